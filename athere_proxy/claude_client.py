# athere_proxy/claude_client.py
"""
此模块负责把聊天补全请求原样转发到 Anthropic Messages API。

主要功能包括：
- 持有在构造时注入的上游 API 密钥（不从全局环境读取）。
- 把客户端请求体作为不透明字节流转发，不解析也不校验。
- 在请求头中注入 Content-Type、协议版本头和密钥头。
- 把 httpx 的网络层异常转换为代理的错误分类（502 / 504）。

上游返回的状态码和响应体由调用方原样回传，此模块不做任何重试。
"""
import logging
from typing import Optional

import httpx

from .config import ClaudeUpstreamConfig, LOGGER_NAME, API_KEY_ENV_VAR
from .errors import ConfigurationError, UpstreamError, UpstreamTimeoutError

logger = logging.getLogger(LOGGER_NAME)

MISSING_KEY_MESSAGE = (
    f"{API_KEY_ENV_VAR} not configured. "
    "Add it to the hosting environment's secrets or to config/settings.yaml."
)


class ClaudeClient:
    """
    Anthropic Messages API 的薄转发客户端。

    Args:
        api_key: 上游密钥。为 None 时 forward() 会抛出 ConfigurationError 且不发起请求。
        config: 上游地址、协议版本和超时配置。
        transport: 可选的 httpx 传输层，测试时注入 MockTransport。
    """

    def __init__(
        self,
        api_key: Optional[str],
        config: Optional[ClaudeUpstreamConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api_key = api_key
        self.config = config or ClaudeUpstreamConfig()
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.config.timeout),
            transport=transport,
        )

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def _upstream_headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "x-api-key": self._api_key,
            "anthropic-version": self.config.api_version,
        }

    async def forward(self, body: bytes) -> httpx.Response:
        """
        把请求体原样 POST 到上游并返回已读取完毕的上游响应。

        可能抛出的异常:
            ConfigurationError: 未配置密钥，上游不会被访问。
            UpstreamTimeoutError: 超过配置的超时时间。
            UpstreamError: 其他任何网络层错误。
        """
        if not self.configured:
            logger.error(f"未配置 {API_KEY_ENV_VAR}，拒绝转发请求。")
            raise ConfigurationError(MISSING_KEY_MESSAGE)

        logger.debug(f"正在转发 {len(body)} 字节的请求体到上游 {self.config.url}")
        try:
            response = await self._client.post(
                self.config.url,
                content=body,
                headers=self._upstream_headers(),
            )
        except httpx.TimeoutException as e:
            logger.error(f"上游请求超时 ({self.config.timeout} 秒): {e!r}")
            raise UpstreamTimeoutError(str(e) or f"Upstream timed out after {self.config.timeout}s") from e
        except httpx.HTTPError as e:
            logger.error(f"上游请求失败: {e!r}")
            raise UpstreamError(str(e) or e.__class__.__name__) from e

        logger.info(f"已收到上游响应，状态码 {response.status_code}")
        return response

    async def aclose(self) -> None:
        await self._client.aclose()
