"""集中配置管理

安装流程的全部可调参数集中在 InstallConfig，
支持从 YAML 文件加载 + 编程式覆盖（CLI 参数优先于文件）。
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field, fields
from typing import Any

import yaml

from fastinstall.core.exceptions import ConfigError
from fastinstall.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

DEFAULT_CACHE_DIR = "~/.npm-fast-install"
DEFAULT_MAX_TASKS = 5


@dataclass
class InstallConfig:
    """一次安装运行的配置"""

    # 目录
    working_dir: str = ""             # 含 package.json 的项目目录，空则取当前目录
    cache_dir: str = DEFAULT_CACHE_DIR
    scratch_dir: str = ""             # 拉取临时目录的父目录，空则使用系统临时目录

    # 执行
    max_tasks: int = DEFAULT_MAX_TASKS
    production: bool = False          # True 时只安装 dependencies
    keep: bool = False                # True 时保留已有 node_modules，不做备份

    # 目标平台，空则探测本机 node
    arch: str = ""
    abi_tag: str = ""

    # npm
    registry: str = ""
    allow_shrinkwrap: bool = False
    npm_bin: str = "npm"
    node_bin: str = "node"

    # 显式依赖 {name: range}，设置后不再读取 package.json
    dependencies: dict[str, str] | None = None

    # 放不到字段里的配置项
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.max_tasks < 1:
            raise ConfigError(f"max_tasks 必须 >= 1，实际: {self.max_tasks}")
        if self.dependencies is not None and not isinstance(self.dependencies, dict):
            raise ConfigError("dependencies 必须是 {包名: 版本范围} 映射")

    @classmethod
    def from_file(cls, path: str, **overrides: Any) -> InstallConfig:
        """从 YAML 文件加载配置，文件不存在则使用默认值

        overrides 中值为 None 的项视为未指定，不覆盖文件内容。
        """
        try:
            data = load_yaml(path)
        except (yaml.YAMLError, ValueError) as e:
            raise ConfigError(f"无法读取配置文件: {path} - {e}") from e
        known = {f.name for f in fields(cls)} - {"extra"}
        matched = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        matched.update({k: v for k, v in overrides.items() if v is not None})
        try:
            cfg = cls(**matched)
        except TypeError as e:
            raise ConfigError(f"配置文件内容无效: {path} - {e}") from e
        cfg.extra = extra
        if extra:
            logger.debug("配置文件中未识别的字段: %s", ", ".join(extra))
        return cfg

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# 全局单例，首次 import 时不加载文件；由 CLI 入口显式初始化
_current: InstallConfig | None = None


def get_config() -> InstallConfig:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = InstallConfig()
    return _current


def init_config(path: str, **overrides: Any) -> InstallConfig:
    """从文件初始化全局配置"""
    global _current  # noqa: PLW0603
    _current = InstallConfig.from_file(path, **overrides)
    logger.info("配置已加载: %s", path)
    return _current
