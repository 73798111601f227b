"""路径解析 — 展开 ~ 与 Windows 环境变量"""

from __future__ import annotations

import os
import re
import sys
from pathlib import Path

_WIN_ENV_RE = re.compile(r"%([^%]*)%")


def home_dir() -> str:
    """当前用户主目录（Windows 读 USERPROFILE，其余读 HOME）"""
    var = "USERPROFILE" if sys.platform == "win32" else "HOME"
    return os.environ.get(var) or str(Path.home())


def resolve_path(*segments: str | os.PathLike[str]) -> Path:
    """拼接路径片段并解析为绝对路径

    - 开头的 ``~`` 或 ``~/...`` 替换为用户主目录（``~user`` 不展开）
    - Windows 下 ``%VAR%`` 替换为对应环境变量，未定义的保持原样
    """
    joined = os.path.join(*(os.fspath(s) for s in segments))
    if joined == "~" or joined.startswith(("~/", "~\\")):
        joined = home_dir() + joined[1:]
    if sys.platform == "win32":
        joined = _WIN_ENV_RE.sub(
            lambda m: os.environ.get(m.group(1), m.group(0)), joined,
        )
    return Path(os.path.abspath(joined))
