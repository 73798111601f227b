"""依赖版本解析器

把 (包名, 版本范围) 解析为具体版本:
  - 范围为 "*" / "latest" / 空: 取 latest
  - 其他: 取满足范围且 <= latest 的最高已发布版本
  - 没有满足的版本或范围无法解析（如 dist-tag "next"）: 回退到 latest，只记警告

版本范围语法按 npm 规则处理（semantic_version.NpmSpec）。
"""

from __future__ import annotations

import logging

import semantic_version

from fastinstall.core.dep.models import Dependency, ResolvedVersion, VersionListing
from fastinstall.core.exceptions import ResolutionError
from fastinstall.core.protocols import PackageResolver

logger = logging.getLogger(__name__)

LATEST_SENTINELS = frozenset(("", "*", "latest"))


def exact_version(version_range: str) -> str | None:
    """范围本身是合法的精确版本时返回规范化版本号，否则返回 None

    与 npm 一致，容忍前缀 "=" 和 "v"。
    """
    candidate = version_range.strip().lstrip("=").strip()
    if candidate[:1] in ("v", "V"):
        candidate = candidate[1:]
    try:
        return str(semantic_version.Version(candidate))
    except ValueError:
        return None


def _parse_versions(raw: tuple[str, ...]) -> list[semantic_version.Version]:
    parsed = []
    for v in raw:
        try:
            parsed.append(semantic_version.Version(v))
        except ValueError:
            continue
    return parsed


def max_satisfying(versions: tuple[str, ...], version_range: str, latest: str) -> str | None:
    """满足范围且不超过 latest 的最高版本；范围非法或无匹配返回 None"""
    try:
        spec = semantic_version.NpmSpec(version_range.strip())
    except ValueError:
        return None

    candidates = _parse_versions(versions)
    try:
        ceiling = semantic_version.Version(latest)
    except ValueError:
        ceiling = None
    if ceiling is not None:
        candidates = [v for v in candidates if v <= ceiling]

    best = spec.select(candidates)
    return str(best) if best is not None else None


class DependencyResolver:
    """PackageResolver 之上的版本选择适配层"""

    def __init__(self, package_resolver: PackageResolver) -> None:
        self.package_resolver = package_resolver

    def list_versions(self, dep: Dependency) -> VersionListing:
        try:
            return self.package_resolver.list_versions(dep.name)
        except ResolutionError as e:
            if not e.dependency:
                e.dependency = dep.name
            e.stage = e.stage or "resolve"
            raise

    def resolve(self, dep: Dependency) -> ResolvedVersion:
        """解析为具体版本；查询本身失败抛 ResolutionError，范围不满足不算错误"""
        listing = self.list_versions(dep)
        if not listing.latest:
            raise ResolutionError(
                f"仓库未返回 {dep.name} 的 latest 版本",
                stage="resolve", dependency=dep.name,
            )

        spec = dep.version_range.strip()
        if spec in LATEST_SENTINELS:
            return ResolvedVersion(dep.name, listing.latest, listing.metadata)

        version = max_satisfying(listing.versions, spec, listing.latest)
        if version is None:
            logger.warning(
                "%s 没有满足 '%s' 的版本，回退到 latest %s",
                dep.name, spec, listing.latest,
            )
            return ResolvedVersion(
                dep.name, listing.latest, listing.metadata, fell_back=True,
            )
        return ResolvedVersion(dep.name, version, listing.metadata)
