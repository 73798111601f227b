"""基于 npm CLI 的 PackageResolver 实现

- list_versions:   npm view <name> --json
- fetch_and_build: npm install --prefix <dest> <name>@<version>

所有子进程调用经由 CommandExecutor，测试中注入 fake 执行器。
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from fastinstall.core.dep.models import VersionListing
from fastinstall.core.exceptions import FetchError, ResolutionError
from fastinstall.utils.shell import CommandExecutor, get_executor

logger = logging.getLogger(__name__)


class NpmPackageResolver:
    """通过本机 npm 查询版本、安装包"""

    def __init__(
        self,
        *,
        npm_bin: str = "npm",
        registry: str = "",
        allow_shrinkwrap: bool = False,
        executor: CommandExecutor | None = None,
    ) -> None:
        self.npm_bin = npm_bin
        self.registry = registry
        self.allow_shrinkwrap = allow_shrinkwrap
        self.executor = executor or get_executor()

    def _common_args(self) -> list[str]:
        args = ["--loglevel=error", "--color=false"]
        if self.registry:
            args.append(f"--registry={self.registry}")
        return args

    def list_versions(self, name: str) -> VersionListing:
        r = self.executor.execute(
            [self.npm_bin, "view", name, "--json", *self._common_args()],
        )
        if not r.success:
            raise ResolutionError(
                f"查询 {name} 版本失败 (rc={r.returncode}): {r.stderr.strip()[:500]}",
                stage="resolve", dependency=name,
            )
        try:
            info: Any = json.loads(r.stdout)
        except json.JSONDecodeError as e:
            raise ResolutionError(
                f"npm view {name} 输出无法解析: {e}",
                stage="resolve", dependency=name,
            ) from e
        # 查询结果跨多个版本时 npm 返回数组，取最后一个
        if isinstance(info, list):
            info = info[-1] if info else {}
        if not isinstance(info, dict) or not info.get("version"):
            raise ResolutionError(
                f"npm view {name} 未返回版本信息", stage="resolve", dependency=name,
            )

        versions = info.get("versions") or [info["version"]]
        if isinstance(versions, str):
            versions = [versions]
        return VersionListing(
            latest=str(info["version"]),
            versions=tuple(str(v) for v in versions),
            metadata=info,
        )

    def fetch_and_build(self, name: str, version: str, dest_dir: Path) -> None:
        args = [
            self.npm_bin, "install", "--prefix", str(dest_dir),
            "--no-save", "--no-audit", "--no-fund",
            *self._common_args(),
        ]
        if not self.allow_shrinkwrap:
            args.append("--no-package-lock")
        args.append(f"{name}@{version}")

        r = self.executor.execute(args, cwd=str(dest_dir))
        if not r.success:
            raise FetchError(
                f"安装 {name}@{version} 失败 (rc={r.returncode}): {r.stderr.strip()[:500]}",
                stage="fetch", dependency=name,
            )
        logger.debug("npm install %s@%s 完成", name, version)
