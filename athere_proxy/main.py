# athere_proxy/main.py
"""
此模块是 FastAPI 应用的主入口点。
它负责根据配置组装应用、注册代理路由和预检响应、管理对外 HTTP 客户端的生命周期。

路由:
- POST /api/claude: 转发到 Anthropic Messages API，注入服务端密钥。
- GET  /proxy?url=...: 以浏览器身份抓取任意地址，绕过跨域限制。
- OPTIONS: pages 模式下每个路由各自的预检；worker 模式下任意路径的统一预检。
- 其余路径: 回落到 static_dir 下的静态资源，未配置时返回 404。
"""
import json
import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, Response
from starlette.staticfiles import StaticFiles

from .claude_client import ClaudeClient
from .config import AppSettings, LOGGER_NAME, settings
from .cors import (
    ALLOW_ORIGIN_HEADER,
    CLAUDE_METHODS,
    FETCH_METHODS,
    WORKER_ALLOW_HEADERS,
    WORKER_METHODS,
    cors_headers,
    preflight_response,
    with_cors,
)
from .errors import ProxyError
from .fetch_proxy import UrlFetcher

logger = logging.getLogger(LOGGER_NAME)


def _json_error(status_code: int, message: str) -> Response:
    return Response(
        content=json.dumps({"error": message}),
        status_code=status_code,
        media_type="application/json",
        headers={ALLOW_ORIGIN_HEADER: "*"},
    )


def create_app(
    app_settings: AppSettings,
    claude_transport: Optional[httpx.AsyncBaseTransport] = None,
    fetch_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    根据显式传入的配置创建应用。

    参数:
        app_settings: 应用配置，密钥从这里注入 ClaudeClient，而不是在请求时读取环境变量。
        claude_transport: 可选，AI 代理上游使用的 httpx 传输层。
        fetch_transport: 可选，URL 抓取代理使用的 httpx 传输层。
    """
    proxy_config = app_settings.proxy
    max_age = proxy_config.cors.max_age
    worker_mode = app_settings.server.deployment_mode == "worker"

    claude = ClaudeClient(app_settings.api_key(), proxy_config.claude, transport=claude_transport)
    fetcher = UrlFetcher(proxy_config.fetch, transport=fetch_transport)

    @asynccontextmanager
    async def lifespan(app_instance: FastAPI):
        logger.info(f"应用 '{app_settings.app_name}' 启动中... 部署模式: {app_settings.server.deployment_mode}")
        if not claude.configured:
            logger.warning("未配置上游 API 密钥，/api/claude 将返回 500。")
        yield
        await claude.aclose()
        await fetcher.aclose()
        logger.info(f"应用 '{app_settings.app_name}' 关闭中...")

    app = FastAPI(title=app_settings.app_name, version="1.0.0", lifespan=lifespan)
    app.state.claude = claude
    app.state.fetcher = fetcher

    # 组合 worker 对 /proxy 不区分请求方法；pages 模式只有 GET
    fetch_methods = ["GET", "POST", "PUT", "PATCH", "DELETE"] if worker_mode else ["GET"]

    if worker_mode:
        worker_cors = cors_headers(WORKER_METHODS, WORKER_ALLOW_HEADERS, max_age)
        proxy_routes = {("POST", "/api/claude")} | {(method, "/proxy") for method in fetch_methods}

        @app.middleware("http")
        async def add_worker_cors(request: Request, call_next):
            # 组合 worker 在任何路由之前处理预检
            if request.method == "OPTIONS":
                return preflight_response(WORKER_METHODS, WORKER_ALLOW_HEADERS, max_age)
            response = await call_next(request)
            # 静态资源和 404 不附加 CORS 头
            if (request.method, request.url.path) in proxy_routes:
                with_cors(response, worker_cors)
            return response
    else:
        @app.options("/api/claude")
        async def claude_preflight():
            return preflight_response(CLAUDE_METHODS, max_age=max_age)

        @app.options("/proxy")
        async def fetch_preflight():
            return preflight_response(FETCH_METHODS, max_age=max_age)

    @app.post("/api/claude")
    async def claude_endpoint(request: Request):
        """把请求体原样转发到上游，回传上游状态码和响应体。"""
        body = await request.body()
        try:
            upstream = await claude.forward(body)
        except ProxyError as e:
            logger.error(f"AI 代理失败 ({e.status_code}): {e.message}", exc_info=app_settings.debug_mode)
            return _json_error(e.status_code, e.message)

        return Response(
            content=upstream.content,
            status_code=upstream.status_code,
            media_type="application/json",
            headers={ALLOW_ORIGIN_HEADER: "*"},
        )

    @app.api_route("/proxy", methods=fetch_methods)
    async def fetch_endpoint(url: Optional[str] = None):
        """抓取 url 参数指定的地址，移除安全头后回传。"""
        if not url:
            return PlainTextResponse("Missing url parameter", status_code=400, headers={ALLOW_ORIGIN_HEADER: "*"})

        try:
            target = await fetcher.fetch(url)
        except ProxyError as e:
            logger.error(f"URL 抓取代理失败 ({e.status_code}): {e.message}", exc_info=app_settings.debug_mode)
            label = "Proxy timeout" if e.status_code == 504 else "Proxy error"
            return PlainTextResponse(f"{label}: {e.message}", status_code=e.status_code, headers={ALLOW_ORIGIN_HEADER: "*"})

        response = Response(content=target.content, status_code=target.status_code)
        # Response 未设置 media_type 时不会生成 content-type，因此这里原样追加所有头
        for key, value in fetcher.relay_headers(target):
            response.headers.append(key, value)
        response.headers[ALLOW_ORIGIN_HEADER] = "*"
        return response

    if app_settings.server.static_dir:
        logger.info(f"静态资源目录: {app_settings.server.static_dir}")
        app.mount("/", StaticFiles(directory=app_settings.server.static_dir, html=True), name="assets")
    else:
        @app.api_route("/{path:path}", methods=["GET", "HEAD", "POST"], include_in_schema=False)
        async def not_found(path: str):
            return PlainTextResponse("Not found", status_code=404)

    return app


# 默认 ASGI 应用，供 `uvicorn athere_proxy.main:app` 使用
app = create_app(settings)


# ---- 本地开发服务器启动 ----
if __name__ == "__main__":
    import uvicorn

    from .log_config import build_logging_config

    uvicorn.run(
        app,
        host=settings.server_host,
        port=settings.server_port,
        log_config=build_logging_config(settings),
    )
