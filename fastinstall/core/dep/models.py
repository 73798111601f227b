"""依赖与缓存数据模型

数据类:
- Dependency: 声明的依赖（包名 + 版本范围）
- ResolvedVersion: 解析后的具体版本
- CacheKey: 缓存键 (name, version, arch, abi_tag)
- VersionListing: 外部解析器返回的版本列表
- PlatformInfo / ModuleRecord / RunResult: 运行结果
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class Dependency:
    """单个声明依赖，重复包名不去重，各自独立处理"""

    name: str
    version_range: str
    group: str = "dependencies"  # dependencies / devDependencies / peerDependencies

    def __str__(self) -> str:
        return f"{self.name}@{self.version_range}"


@dataclass(frozen=True)
class VersionListing:
    """PackageResolver.list_versions 的返回值"""

    latest: str
    versions: tuple[str, ...]
    metadata: dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class ResolvedVersion:
    """解析结果，version 总是存在（无匹配时回退到 latest）"""

    name: str
    version: str
    metadata: dict[str, Any] = field(default_factory=dict, compare=False)
    fell_back: bool = False


@dataclass(frozen=True)
class CacheKey:
    """缓存键，映射到 cache_root/name/version/arch/abi_tag"""

    name: str
    version: str
    arch: str
    abi_tag: str

    @property
    def parts(self) -> tuple[str, str, str, str]:
        return (self.name, self.version, self.arch, self.abi_tag)

    def path_under(self, root: Path) -> Path:
        # scoped 包名 "@scope/pkg" 自然落在两级目录下
        return root.joinpath(*self.parts)

    def __str__(self) -> str:
        return f"{self.name}@{self.version} ({self.arch}, abi {self.abi_tag})"


@dataclass(frozen=True)
class PlatformInfo:
    """目标平台信息"""

    node_version: str
    arch: str
    abi_tag: str


@dataclass
class ModuleRecord:
    """已安装模块的结果记录"""

    version: str
    path: Path
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class RunResult:
    """一次成功安装的结果，失败时不返回部分结果"""

    platform: PlatformInfo
    modules: dict[str, ModuleRecord] = field(default_factory=dict)
    stats: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "node": self.platform.node_version,
            "arch": self.platform.arch,
            "abi": self.platform.abi_tag,
            "modules": {
                name: {"version": rec.version, "path": str(rec.path)}
                for name, rec in sorted(self.modules.items())
            },
            "stats": dict(self.stats),
        }
