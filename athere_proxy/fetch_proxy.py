# athere_proxy/fetch_proxy.py
"""
此模块实现 URL 抓取代理：以固定的浏览器身份抓取任意地址，
去掉阻止跨域嵌入的安全头后，把状态码、响应头和响应体交还给路由。
"""
import logging
from typing import List, Optional, Tuple

import httpx

from .config import FetchProxyConfig, LOGGER_NAME
from .errors import UpstreamError, UpstreamTimeoutError

logger = logging.getLogger(LOGGER_NAME)

# httpx 已经解码了响应体，原有的编码与分帧头不再适用
FRAMING_HEADERS = frozenset({
    "content-encoding",
    "content-length",
    "transfer-encoding",
    "connection",
    "keep-alive",
})


class UrlFetcher:
    """以模拟浏览器的请求头抓取目标地址，自动跟随重定向。"""

    def __init__(
        self,
        config: Optional[FetchProxyConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or FetchProxyConfig()
        self._stripped = {name.lower() for name in self.config.stripped_headers}
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.config.timeout),
            follow_redirects=True,
            transport=transport,
        )

    def _browser_headers(self) -> dict:
        return {
            "User-Agent": self.config.user_agent,
            "Accept": self.config.accept,
            "Accept-Language": self.config.accept_language,
        }

    async def fetch(self, target_url: str) -> httpx.Response:
        """
        抓取目标地址。

        可能抛出的异常:
            UpstreamTimeoutError: 超过配置的超时时间。
            UpstreamError: DNS 失败、连接被拒绝、非法地址等任何其他错误。
        """
        logger.info(f"正在抓取: {target_url}")
        try:
            url = httpx.URL(target_url)
            if url.scheme not in ("http", "https"):
                raise httpx.UnsupportedProtocol(f"Unsupported URL protocol for {target_url!r}; expected http or https.")
            response = await self._client.get(url, headers=self._browser_headers())
        except httpx.TimeoutException as e:
            logger.error(f"抓取 {target_url} 超时: {e!r}")
            raise UpstreamTimeoutError(str(e) or f"timed out after {self.config.timeout}s") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error(f"抓取 {target_url} 失败: {e!r}")
            raise UpstreamError(str(e) or e.__class__.__name__) from e

        logger.debug(f"{target_url} -> {response.status_code} ({len(response.content)} 字节)")
        return response

    def relay_headers(self, response: httpx.Response) -> List[Tuple[str, str]]:
        """返回可以回传给调用方的响应头列表，保留重复头（如 Set-Cookie）。"""
        return [
            (key, value)
            for key, value in response.headers.multi_items()
            if key.lower() not in self._stripped and key.lower() not in FRAMING_HEADERS
        ]

    async def aclose(self) -> None:
        await self._client.aclose()
