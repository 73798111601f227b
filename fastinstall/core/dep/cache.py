"""本地包缓存

职责:
- CacheKey -> 目录路径映射（纯函数）
- 缓存项存在性检查
- 扫描已缓存的条目
- 缓存写入守卫（乐观 / 按键加锁）

缓存布局:
  cache_root/<name>/<version>/<arch>/<abi_tag>/   内容为构建好的 node_modules

同一次运行内、乃至跨进程共享同一缓存根目录时，核心不做任何加锁；
并发写同一个键最多造成重复拉取，移动/复制步骤可覆盖写，不会损坏缓存。
"""

from __future__ import annotations

import contextlib
import logging
import threading
from collections.abc import Iterator
from pathlib import Path

from fastinstall.core.dep.models import CacheKey

logger = logging.getLogger(__name__)


class CacheStore:
    """缓存目录树的只读视图 + 路径映射"""

    def __init__(self, root: Path) -> None:
        self.root = root

    def ensure_root(self) -> None:
        if not self.root.exists():
            logger.info("初始化缓存目录: %s", self.root)
            self.root.mkdir(parents=True, exist_ok=True)

    def key_for(self, name: str, version: str, arch: str, abi_tag: str) -> CacheKey:
        return CacheKey(name=name, version=version, arch=arch, abi_tag=abi_tag)

    def path_for(self, key: CacheKey) -> Path:
        return key.path_under(self.root)

    def exists(self, key: CacheKey) -> bool:
        return self.path_for(key).exists()

    def list_entries(self, name: str | None = None) -> list[CacheKey]:
        """列出缓存中的全部条目，可按包名过滤

        scoped 包 "@scope/pkg" 占两级目录，按 "@" 前缀识别。
        """
        if not self.root.exists():
            return []

        keys: list[CacheKey] = []
        for pkg_name, pkg_dir in self._package_dirs():
            if name is not None and pkg_name != name:
                continue
            for ver_dir in _subdirs(pkg_dir):
                for arch_dir in _subdirs(ver_dir):
                    for abi_dir in _subdirs(arch_dir):
                        keys.append(CacheKey(
                            name=pkg_name, version=ver_dir.name,
                            arch=arch_dir.name, abi_tag=abi_dir.name,
                        ))
        return sorted(keys, key=lambda k: k.parts)

    def _package_dirs(self) -> Iterator[tuple[str, Path]]:
        for d in _subdirs(self.root):
            if d.name.startswith("@"):
                for sub in _subdirs(d):
                    yield f"{d.name}/{sub.name}", sub
            else:
                yield d.name, d


def _subdirs(path: Path) -> list[Path]:
    return sorted(
        p for p in path.iterdir()
        if p.is_dir() and not p.name.startswith(".")
    )


# =========================================================================
# 缓存写入守卫
# =========================================================================

class OptimisticGuard:
    """不加锁：仅依赖多次存在性检查做尽力去重（默认）"""

    @contextlib.contextmanager
    def hold(self, key: CacheKey) -> Iterator[None]:
        yield


class KeyedLockGuard:
    """进程内按 CacheKey 互斥，同键的发布步骤串行执行

    只约束同一进程内的工作线程，跨进程共享缓存时仍退化为乐观策略。
    """

    def __init__(self) -> None:
        self._locks: dict[CacheKey, threading.Lock] = {}
        self._mutex = threading.Lock()

    def _lock_for(self, key: CacheKey) -> threading.Lock:
        with self._mutex:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextlib.contextmanager
    def hold(self, key: CacheKey) -> Iterator[None]:
        with self._lock_for(key):
            yield
