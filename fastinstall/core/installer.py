"""安装入口: 拉取 → 发布 → 清理

用法:
    from fastinstall.core.config import InstallConfig
    from fastinstall.core.installer import Installer

    result = Installer().run(InstallConfig(working_dir="path/to/project"))
    print(result.modules["chalk"].version)

三个阶段严格串行，每个阶段内部有界并发、首个失败即终止。
任一阶段失败时直接抛出该异常，不返回部分结果，临时目录保留在磁盘上供排查。
"""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path

from fastinstall.core.config import InstallConfig
from fastinstall.core.dep.cache import CacheStore
from fastinstall.core.dep.fetcher import FetchOrchestrator, FetchReport
from fastinstall.core.dep.manifest import PackageJsonLoader, dependencies_from_mapping
from fastinstall.core.dep.models import Dependency, ModuleRecord, PlatformInfo, RunResult
from fastinstall.core.dep.npm import NpmPackageResolver
from fastinstall.core.exceptions import ConfigError
from fastinstall.core.platform import detect_platform
from fastinstall.core.protocols import CacheGuard, ManifestLoader, PackageResolver
from fastinstall.core.stages import cleanup_all, publish_all
from fastinstall.utils.paths import resolve_path
from fastinstall.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)

DEST_DIR_NAME = "node_modules"


def backup_destination(dest: Path) -> Path | None:
    """把已有目标目录改名为 <dest>.<毫秒时间戳>.bak，返回备份路径"""
    if not dest.exists():
        return None
    backup = dest.with_name(f"{dest.name}.{int(time.time() * 1000)}.bak")
    try:
        os.rename(dest, backup)
    except OSError as e:
        raise ConfigError(f"备份 {dest} 失败: {e}") from e
    logger.info("已备份原目录: %s -> %s", dest, backup)
    return backup


class Installer:
    """组装各阶段协作方并执行一次安装

    package_resolver / manifest_loader / guard 均可注入，
    未注入时使用 npm CLI、package.json 和乐观（不加锁）策略。
    """

    def __init__(
        self,
        *,
        package_resolver: PackageResolver | None = None,
        manifest_loader: ManifestLoader | None = None,
        guard: CacheGuard | None = None,
        executor: CommandExecutor | None = None,
    ) -> None:
        self.package_resolver = package_resolver
        self.manifest_loader = manifest_loader or PackageJsonLoader()
        self.guard = guard
        self.executor = executor

    def _resolver_for(self, config: InstallConfig) -> PackageResolver:
        if self.package_resolver is not None:
            return self.package_resolver
        return NpmPackageResolver(
            npm_bin=config.npm_bin,
            registry=config.registry,
            allow_shrinkwrap=config.allow_shrinkwrap,
            executor=self.executor,
        )

    def _load_dependencies(self, config: InstallConfig, project_dir: Path) -> list[Dependency]:
        if config.dependencies is not None:
            return dependencies_from_mapping(config.dependencies)
        return self.manifest_loader.load(project_dir, production=config.production)

    def run(self, config: InstallConfig) -> RunResult:
        project_dir = resolve_path(config.working_dir or os.getcwd())
        if not project_dir.is_dir():
            raise ConfigError(f"无效的工作目录: {project_dir}")

        platform = detect_platform(
            arch=config.arch, abi_tag=config.abi_tag,
            node_bin=config.node_bin, executor=self.executor,
        )
        logger.info("Node 版本:  %s", platform.node_version)
        logger.info("目标架构:   %s", platform.arch)
        logger.info("模块 ABI:   %s", platform.abi_tag)

        deps = self._load_dependencies(config, project_dir)
        result = RunResult(platform=platform)
        if not deps:
            logger.info("没有需要安装的依赖")
            return result
        logger.info("发现 %d 个依赖", len(deps))

        cache = CacheStore(resolve_path(config.cache_dir))
        cache.ensure_root()

        dest = project_dir / DEST_DIR_NAME
        if not config.keep:
            backup_destination(dest)
        dest.mkdir(parents=True, exist_ok=True)

        scratch_root = None
        if config.scratch_dir:
            scratch_root = resolve_path(config.scratch_dir)
            scratch_root.mkdir(parents=True, exist_ok=True)

        orchestrator = FetchOrchestrator(
            cache, self._resolver_for(config),
            arch=platform.arch, abi_tag=platform.abi_tag,
            guard=self.guard,
            scratch_root=scratch_root,
        )
        report = orchestrator.run_all(deps, config.max_tasks)

        publish_all(report.cache_entries, dest, config.max_tasks)
        if report.scratch_dirs:
            cleanup_all(report.scratch_dirs, config.max_tasks)

        result.modules = self._module_records(report, dest)
        result.stats = report.stats
        logger.info("安装完成: %d 个模块 -> %s", len(result.modules), dest)
        return result

    @staticmethod
    def _module_records(report: FetchReport, dest: Path) -> dict[str, ModuleRecord]:
        """按声明顺序生成结果映射，同名依赖先声明者优先"""
        modules: dict[str, ModuleRecord] = {}
        for job in report.jobs:
            name = job.dep.name
            if name in modules:
                logger.warning(
                    "依赖 %s 重复声明 (%s)，结果保留先声明的 %s",
                    name, job.dep.group, modules[name].version,
                )
                continue
            metadata = job.resolved.metadata if job.resolved else {}
            modules[name] = ModuleRecord(
                version=job.version, path=dest / name, metadata=metadata,
            )
        return modules


def platform_summary(platform: PlatformInfo) -> str:
    return f"node {platform.node_version} / {platform.arch} / abi {platform.abi_tag}"
