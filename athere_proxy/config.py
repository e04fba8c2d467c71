# athere_proxy/config.py
"""
此模块定义了应用配置的数据模型以及加载配置的逻辑。

它使用 Pydantic 库来定义配置结构、提供数据验证和默认值。
配置可以从 YAML 文件加载，如果文件不存在或格式错误，则会使用默认配置。
上游 API 密钥属于部署时注入的机密，优先从环境变量 `ANTHROPIC_API_KEY` 读取。
"""
import os
from typing import List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, SecretStr, ValidationError

# 应用主 logger 的名称，所有模块通过它获取日志记录器
LOGGER_NAME = "athere_proxy"

# 部署环境注入机密所用的环境变量名
API_KEY_ENV_VAR = "ANTHROPIC_API_KEY"


class ClaudeUpstreamConfig(BaseModel):
    """
    Anthropic Messages API 上游相关的配置。
    """
    url: str = Field(default="https://api.anthropic.com/v1/messages", description="聊天补全请求被转发到的固定上游地址。")
    api_version: str = Field(default="2023-06-01", description="随请求发送的 anthropic-version 协议版本头。")
    timeout: float = Field(default=60.0, gt=0, description="向上游发出请求的超时时间（秒）。超时会以 504 报告。")


class FetchProxyConfig(BaseModel):
    """
    URL 抓取代理相关的配置。请求头模拟常见浏览器，以绕过简单的反爬拦截。
    """
    user_agent: str = Field(default="Mozilla/5.0 (compatible; AtHereBot/1.0)", description="抓取目标地址时使用的 User-Agent。")
    accept: str = Field(default="text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8", description="抓取目标地址时使用的 Accept 头。")
    accept_language: str = Field(default="en-AU,en;q=0.9", description="抓取目标地址时使用的 Accept-Language 头。")
    timeout: float = Field(default=30.0, gt=0, description="抓取目标地址的超时时间（秒）。")
    stripped_headers: List[str] = Field(
        default_factory=lambda: ["Content-Security-Policy", "X-Frame-Options"],
        description="从目标响应中移除的安全头，以便调用页面跨域嵌入或渲染内容。",
    )


class CorsConfig(BaseModel):
    """
    CORS 预检响应相关的配置。
    """
    max_age: int = Field(default=86400, ge=0, description="浏览器缓存预检结果的时长（秒）。")


class ProxyConfig(BaseModel):
    """
    代理核心功能相关的配置。
    """
    claude: ClaudeUpstreamConfig = Field(default_factory=ClaudeUpstreamConfig, description="AI 代理上游配置。")
    fetch: FetchProxyConfig = Field(default_factory=FetchProxyConfig, description="URL 抓取代理配置。")
    cors: CorsConfig = Field(default_factory=CorsConfig, description="CORS 配置。")


class OfflineCacheConfig(BaseModel):
    """
    客户端离线缓存 worker 的配置。修改 cache_name 即可让之前缓存的所有资源整体失效。
    """
    cache_name: str = Field(default="athere-v20c", min_length=1, description="当前缓存桶的名称（版本号）。")
    precache_paths: List[str] = Field(default_factory=lambda: ["/"], description="安装阶段预先缓存的路径，其余资源在首次请求时惰性缓存。")
    bypass_prefixes: List[str] = Field(default_factory=lambda: ["/api/"], description="以这些前缀开头的路径不经过缓存。")
    bypass_paths: List[str] = Field(default_factory=lambda: ["/proxy"], description="与这些路径完全相同的请求不经过缓存。")


class ServerConfig(BaseModel):
    """
    HTTP 服务本身的配置。
    """
    deployment_mode: Literal["pages", "worker"] = Field(
        default="pages",
        description="pages: 每个路由独立的函数与预检；worker: 单一组合 worker，任意路径的预检都允许 GET/POST/OPTIONS。",
    )
    static_dir: Optional[str] = Field(default=None, description="未匹配代理路由的请求回落到此目录下的静态资源。为空时返回 404。")


class AppSettings(BaseModel):
    """
    应用顶层配置模型，聚合了所有其他配置部分。
    """
    app_name: str = Field(default="athere-proxy", description="应用程序的名称，主要用于日志记录。")
    log_level: str = Field(default="INFO", description="应用程序的日志级别 (例如 DEBUG, INFO, WARNING, ERROR)。")
    debug_mode: bool = Field(default=False, description="是否启用调试模式。调试模式下错误日志会附带完整堆栈。")
    server_host: str = Field(default="127.0.0.1", description="Uvicorn 开发服务器监听的主机地址。")
    server_port: int = Field(default=8000, gt=0, lt=65536, description="Uvicorn 开发服务器监听的端口号。")
    anthropic_api_key: Optional[SecretStr] = Field(default=None, description="上游 API 密钥。永远不会被记录或返回给调用方。")
    server: ServerConfig = Field(default_factory=ServerConfig, description="HTTP 服务配置。")
    proxy: ProxyConfig = Field(default_factory=ProxyConfig, description="代理功能相关的配置。")
    offline_cache: OfflineCacheConfig = Field(default_factory=OfflineCacheConfig, description="离线缓存 worker 配置。")

    def api_key(self) -> Optional[str]:
        """返回明文密钥；未配置或为空字符串时返回 None。"""
        if self.anthropic_api_key is None:
            return None
        return self.anthropic_api_key.get_secret_value() or None


def _apply_env_overrides(app_settings: AppSettings) -> AppSettings:
    # 环境变量中的机密优先于配置文件
    env_key = os.getenv(API_KEY_ENV_VAR)
    if env_key:
        app_settings.anthropic_api_key = SecretStr(env_key)
    return app_settings


def load_config(path: str = "config/settings.yaml") -> AppSettings:
    """
    从指定的 YAML 文件加载应用配置，并叠加环境变量中的机密。

    如果配置文件未找到、为空、或解析/验证失败，则会打印警告信息到控制台，
    并使用默认值。缺少 API 密钥不是启动错误，而是在请求时以 500 报告。

    参数:
        path (str): 配置文件的路径。默认为 "config/settings.yaml"。

    返回:
        AppSettings: 加载并验证后的应用配置实例。
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            config_data = yaml.safe_load(f)
        if not config_data:
            print(f"警告: 配置文件 {path} 为空，将使用默认设置。")
            return _apply_env_overrides(AppSettings())
        return _apply_env_overrides(AppSettings(**config_data))
    except FileNotFoundError:
        print(f"警告: 配置文件 {path} 未找到，将使用默认设置。")
    except yaml.YAMLError as e:
        print(f"警告: 配置文件 {path} 解析错误: {e}，将使用默认设置。")
    except ValidationError as e:
        print(f"警告: 配置文件 {path} 验证错误: {e}，将使用默认设置。")
    return _apply_env_overrides(AppSettings())


# 全局配置实例：仅供 `__main__` 入口和默认 ASGI 应用使用。
# 处理器本身通过 create_app(settings) 显式接收配置。
settings: AppSettings = load_config()
