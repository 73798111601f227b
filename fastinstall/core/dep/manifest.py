"""依赖清单加载

从项目目录的 package.json 读取声明依赖:
- dependencies 始终加载
- devDependencies、peerDependencies 仅在非 production 模式下加载

同名依赖出现在多个分组时不去重，按分组顺序依次返回。
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from fastinstall.core.dep.models import Dependency
from fastinstall.core.exceptions import ManifestError

logger = logging.getLogger(__name__)

MANIFEST_NAME = "package.json"
RUNTIME_GROUPS = ("dependencies",)
DEV_GROUPS = ("devDependencies", "peerDependencies")


def dependencies_from_mapping(
    mapping: dict[str, Any], group: str = "dependencies",
) -> list[Dependency]:
    """{包名: 版本范围} 映射转为依赖列表"""
    return [
        Dependency(name=str(name), version_range=str(rng or "*"), group=group)
        for name, rng in mapping.items()
    ]


class PackageJsonLoader:
    """package.json 依赖加载器"""

    def __init__(self, filename: str = MANIFEST_NAME) -> None:
        self.filename = filename

    def read(self, project_dir: Path) -> dict[str, Any]:
        path = project_dir / self.filename
        if not path.is_file():
            raise ManifestError(f"未找到 {self.filename}: {path}")
        logger.info("加载 %s: %s", self.filename, path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ManifestError(f"{path} 解析失败: {e}") from e
        if not isinstance(data, dict):
            raise ManifestError(f"{path} 顶层不是 JSON 对象")
        return data

    def load(self, project_dir: Path, *, production: bool = False) -> list[Dependency]:
        data = self.read(project_dir)
        groups = RUNTIME_GROUPS if production else RUNTIME_GROUPS + DEV_GROUPS

        deps: list[Dependency] = []
        for group in groups:
            section = data.get(group)
            if not isinstance(section, dict):
                continue
            deps.extend(dependencies_from_mapping(section, group))
        return deps
