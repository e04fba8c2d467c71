# athere_proxy/errors.py
"""
代理的错误分类。

- ConfigurationError: 缺少必需的机密配置，500。
- UpstreamError: 对外请求时发生网络层错误（DNS、连接重置等），502。
- UpstreamTimeoutError: 对外请求超过显式配置的超时时间，504。

客户端输入错误（缺少查询参数）由路由直接以 400 处理，不经过此处。
"""


class ProxyError(Exception):
    """所有代理错误的基类，携带应返回给调用方的状态码。"""
    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(ProxyError):
    status_code = 500


class UpstreamError(ProxyError):
    status_code = 502


class UpstreamTimeoutError(UpstreamError):
    status_code = 504
