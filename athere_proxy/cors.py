# athere_proxy/cors.py
"""
CORS 响应头的构造与附加。
"""
from typing import Dict, Iterable

from starlette.responses import Response

ALLOW_ORIGIN_HEADER = "Access-Control-Allow-Origin"

# 两个代理路由各自的预检允许方法
CLAUDE_METHODS = ("POST", "OPTIONS")
FETCH_METHODS = ("GET", "OPTIONS")
# 组合 worker 部署下任意路径的预检允许方法与请求头
WORKER_METHODS = ("GET", "POST", "OPTIONS")
WORKER_ALLOW_HEADERS = ("Content-Type", "Authorization")


def cors_headers(
    methods: Iterable[str],
    allow_headers: Iterable[str] = ("Content-Type",),
    max_age: int = 86400,
) -> Dict[str, str]:
    """构造完整的宽松 CORS 头集合。"""
    return {
        ALLOW_ORIGIN_HEADER: "*",
        "Access-Control-Allow-Methods": ", ".join(methods),
        "Access-Control-Allow-Headers": ", ".join(allow_headers),
        "Access-Control-Max-Age": str(max_age),
    }


def preflight_response(
    methods: Iterable[str],
    allow_headers: Iterable[str] = ("Content-Type",),
    max_age: int = 86400,
) -> Response:
    """返回 204 空响应体的预检响应。"""
    return Response(status_code=204, headers=cors_headers(methods, allow_headers, max_age))


def with_cors(response: Response, headers: Dict[str, str]) -> Response:
    """在已有响应上覆盖写入 CORS 头并返回同一个响应。"""
    for key, value in headers.items():
        response.headers[key] = value
    return response
