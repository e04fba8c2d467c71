# athere_proxy/offline_cache.py
"""
客户端离线缓存 worker。

以 httpx 传输层的形式运行在客户端一侧，生命周期与浏览器 service worker 相同：

- install(): 打开当前版本的缓存桶并预缓存根文档，失败只记录日志，不会中断安装。
- activate(): 删除名称与当前版本不同的所有缓存桶（整桶失效，不做逐条版本管理）。
- handle_async_request(): 同源 GET 请求优先读缓存，未命中时走网络并把成功的同源响应
  存入缓存；网络不可用时回退到缓存的根文档。

非 GET、跨域以及代理路径上的请求不做任何处理，直接交给网络传输层。

用法::

    worker = OfflineCacheWorker("https://app.example.com")
    await worker.install()
    await worker.activate()
    async with httpx.AsyncClient(transport=worker, base_url=worker.origin) as client:
        await client.get("/index.html")
"""
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import httpx

from .config import LOGGER_NAME, OfflineCacheConfig

logger = logging.getLogger(LOGGER_NAME)


def cache_key(url: httpx.URL) -> str:
    """缓存键是去掉片段后的完整 URL（含查询参数）。"""
    return str(url).split("#", 1)[0]


def _origin(url: httpx.URL) -> Tuple[str, str, Optional[int]]:
    # 未显式给出端口时 httpx 的 port 为 None，按协议默认端口比较
    default_ports = {"http": 80, "https": 443}
    return url.scheme, url.host, url.port or default_ports.get(url.scheme)


@dataclass
class CachedResponse:
    """一次成功响应的快照：状态码、原始响应头和未解码的响应体。"""
    status_code: int
    headers: List[Tuple[str, str]]
    content: bytes = b""

    def to_response(self, request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            self.status_code,
            headers=self.headers,
            stream=httpx.ByteStream(self.content),
            request=request,
        )


@dataclass
class CacheBucket:
    """一个具名缓存桶，URL -> 响应快照。并发写入时后写者覆盖。"""
    name: str
    entries: "OrderedDict[str, CachedResponse]" = field(default_factory=OrderedDict)
    hits: int = 0
    misses: int = 0

    def get(self, key: str) -> Optional[CachedResponse]:
        entry = self.entries.get(key)
        if entry is None:
            self.misses += 1
            logger.debug(f"缓存未命中 [{self.name}]: {key}")
            return None
        self.hits += 1
        logger.debug(f"缓存命中 [{self.name}]: {key}")
        return entry

    def put(self, key: str, entry: CachedResponse) -> None:
        self.entries[key] = entry

    def delete(self, key: str) -> bool:
        return self.entries.pop(key, None) is not None

    def get_stats(self) -> dict:
        total = self.hits + self.misses
        return {
            "name": self.name,
            "size": len(self.entries),
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": f"{(self.hits / total * 100) if total else 0:.1f}%",
        }

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, key: str) -> bool:
        return key in self.entries


class CacheStorage:
    """按名称管理缓存桶的存储，对应浏览器中的 CacheStorage。"""

    def __init__(self):
        self._buckets: Dict[str, CacheBucket] = {}

    def open(self, name: str) -> CacheBucket:
        if name not in self._buckets:
            self._buckets[name] = CacheBucket(name)
        return self._buckets[name]

    def keys(self) -> List[str]:
        return list(self._buckets)

    def delete(self, name: str) -> bool:
        return self._buckets.pop(name, None) is not None

    def match(self, key: str) -> Optional[CachedResponse]:
        """按桶的创建顺序查找第一个匹配项。"""
        for bucket in self._buckets.values():
            if key in bucket:
                return bucket.get(key)
        return None


class OfflineCacheWorker(httpx.AsyncBaseTransport):
    """
    把离线缓存策略包装在网络传输层之前的 httpx 传输层。

    Args:
        origin: 前端应用的源，例如 "https://app.example.com"。只有同源请求会被缓存。
        storage: 缓存存储，默认新建一个内存存储。
        network: 实际发出请求的传输层，默认 httpx.AsyncHTTPTransport()。
        config: 缓存桶名称、预缓存路径和绕过规则。
    """

    def __init__(
        self,
        origin: str,
        storage: Optional[CacheStorage] = None,
        network: Optional[httpx.AsyncBaseTransport] = None,
        config: Optional[OfflineCacheConfig] = None,
    ):
        self.origin = httpx.URL(origin).join("/")
        self.storage = storage if storage is not None else CacheStorage()
        self.network = network if network is not None else httpx.AsyncHTTPTransport()
        self.config = config or OfflineCacheConfig()

    @property
    def cache_name(self) -> str:
        return self.config.cache_name

    def _root_key(self) -> str:
        return cache_key(self.origin)

    async def install(self) -> None:
        """预缓存根文档。任何失败都只记录警告，不会让安装失败。"""
        bucket = self.storage.open(self.cache_name)
        for path in self.config.precache_paths:
            request = httpx.Request("GET", self.origin.join(path))
            try:
                response = await self.network.handle_async_request(request)
                entry = await self._snapshot(response)
                if not 200 <= entry.status_code < 300:
                    raise httpx.HTTPStatusError(
                        f"precache of {request.url} returned {entry.status_code}",
                        request=request,
                        response=entry.to_response(request),
                    )
                bucket.put(cache_key(request.url), entry)
            except Exception as e:
                logger.warning(f"预缓存 {request.url} 失败，安装继续: {e!r}")
        logger.info(f"离线缓存已安装: {self.cache_name} ({len(bucket)} 项)")

    async def activate(self) -> List[str]:
        """删除所有名称与当前版本不同的缓存桶，返回被删除的桶名。"""
        stale = [name for name in self.storage.keys() if name != self.cache_name]
        for name in stale:
            self.storage.delete(name)
            logger.info(f"已删除过期缓存桶: {name}")
        return stale

    def should_bypass(self, request: httpx.Request) -> bool:
        path = request.url.path
        return (
            request.method != "GET"
            or request.url.host != self.origin.host
            or any(path.startswith(prefix) for prefix in self.config.bypass_prefixes)
            or path in self.config.bypass_paths
        )

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        if self.should_bypass(request):
            return await self.network.handle_async_request(request)

        key = cache_key(request.url)
        cached = self.storage.match(key)
        if cached is not None:
            return cached.to_response(request)
        self.storage.open(self.cache_name).misses += 1

        try:
            response = await self.network.handle_async_request(request)
        except httpx.TransportError as e:
            fallback = self.storage.match(self._root_key())
            if fallback is None:
                raise
            logger.info(f"网络不可用，回退到缓存的根文档: {request.url} ({e!r})")
            return fallback.to_response(request)

        if not (200 <= response.status_code < 300 and _origin(request.url) == _origin(self.origin)):
            return response

        entry = await self._snapshot(response)
        try:
            self.storage.open(self.cache_name).put(key, entry)
        except Exception as e:
            # 缓存只是尽力而为的优化
            logger.debug(f"写入缓存失败，已忽略: {key} ({e!r})")
        return entry.to_response(request)

    @staticmethod
    async def _snapshot(response: httpx.Response) -> CachedResponse:
        # 直接读取传输层的原始字节流，保留 content-encoding 对应的未解码内容
        try:
            content = b"".join([part async for part in response.stream])
        finally:
            await response.aclose()
        return CachedResponse(response.status_code, list(response.headers.multi_items()), content)

    async def aclose(self) -> None:
        await self.network.aclose()
