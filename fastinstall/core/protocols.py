"""外部协作方协议定义

流水线核心只依赖这里的抽象，npm 的具体实现在 core/dep/npm.py，
测试中替换为内存 fake。

使用 typing.Protocol 而非 ABC，使得现有类无需修改继承关系即可满足协议。
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, ContextManager, Protocol

if TYPE_CHECKING:
    from fastinstall.core.dep.models import CacheKey, Dependency, VersionListing


# =========================================================================
# 包解析/构建工具协议
# =========================================================================

class PackageResolver(Protocol):
    """包版本查询 + 拉取构建

    两个操作都可能阻塞在网络上，由调用方的工作线程承担。
    """

    def list_versions(self, name: str) -> VersionListing:
        """查询全部已发布版本和当前 latest，失败抛 ResolutionError"""
        ...

    def fetch_and_build(self, name: str, version: str, dest_dir: Path) -> None:
        """下载并构建 name@version 到 dest_dir，失败抛 FetchError"""
        ...


# =========================================================================
# 依赖清单加载协议
# =========================================================================

class ManifestLoader(Protocol):
    """从项目描述文件读取声明依赖"""

    def load(self, project_dir: Path, *, production: bool = False) -> list[Dependency]:
        """返回依赖列表，未找到清单时抛 ManifestError"""
        ...


# =========================================================================
# 缓存写入守卫协议
# =========================================================================

class CacheGuard(Protocol):
    """包住 "创建缓存目录 + 移动/复制" 这一步

    默认实现不加锁（并发同键时允许重复拉取），
    可替换为按 CacheKey 加互斥锁的实现而不改变流水线结构。
    """

    def hold(self, key: CacheKey) -> ContextManager[None]:
        ...
