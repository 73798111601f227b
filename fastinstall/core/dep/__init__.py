"""依赖缓存与拉取

- models.py: 数据模型
- manifest.py: package.json 加载
- cache.py: 缓存路径映射与写入守卫
- resolver.py: 版本范围解析
- fetcher.py: 有界并发拉取编排
- npm.py: npm CLI 适配
"""

from fastinstall.core.dep.cache import CacheStore, KeyedLockGuard, OptimisticGuard
from fastinstall.core.dep.fetcher import FetchOrchestrator, FetchReport, TaskState
from fastinstall.core.dep.manifest import PackageJsonLoader
from fastinstall.core.dep.models import CacheKey, Dependency, ResolvedVersion, RunResult
from fastinstall.core.dep.npm import NpmPackageResolver
from fastinstall.core.dep.resolver import DependencyResolver

__all__ = [
    "CacheKey",
    "CacheStore",
    "Dependency",
    "DependencyResolver",
    "FetchOrchestrator",
    "FetchReport",
    "KeyedLockGuard",
    "NpmPackageResolver",
    "OptimisticGuard",
    "PackageJsonLoader",
    "ResolvedVersion",
    "RunResult",
    "TaskState",
]
