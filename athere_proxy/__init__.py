"""
athere_proxy 包

此包包含了 @here 前端所用代理端点与离线缓存的核心源代码。
主要模块包括：
- main.py: FastAPI 应用工厂、路由与本地启动入口。
- config.py: 应用配置模型和加载逻辑。
- claude_client.py: 转发到 Anthropic Messages API 的客户端。
- fetch_proxy.py: 以浏览器身份抓取任意地址的 URL 抓取代理。
- cors.py: CORS 头与预检响应。
- errors.py: 代理的错误分类。
- offline_cache.py: 客户端离线缓存 worker（httpx 传输层）。
- log_config.py: 日志字典配置。
"""
