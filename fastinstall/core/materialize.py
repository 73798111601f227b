"""缓存项发布（先移动，失败再复制）

发布策略:
  1. 源不存在: 目标已存在视为已发布（no-op），否则报错
  2. 源存在: 先尝试 os.rename，同一文件系统下为原子操作
  3. rename 失败（跨分区 EXDEV、目标非空等）: 回退为递归合并复制，源保留原地，
     由清理阶段统一删除

回退复制必须容忍目标已有内容：并发任务可能已向同一缓存键写入。
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import Callable, Literal

from fastinstall.core.exceptions import CopyError, PublishError

logger = logging.getLogger(__name__)

PublishMethod = Literal["moved", "copied", "skipped"]


def mirror(src: Path, dst: Path) -> None:
    """递归复制 src 的内容到 dst，合并覆盖已有文件

    保留符号链接（node_modules/.bin 下都是链接）。
    src 不存在而 dst 已存在时视为已完成。
    """
    if not src.exists():
        if dst.exists():
            logger.debug("源不存在但目标已存在，跳过复制: %s", dst)
            return
        raise CopyError(f"源目录不存在: {src}")

    try:
        shutil.copytree(src, dst, symlinks=True, dirs_exist_ok=True)
    except (shutil.Error, OSError) as e:
        raise CopyError(f"复制失败: {src} -> {dst}: {e}") from e


class PathMaterializer:
    """把拉取产物发布到缓存目录

    rename 可注入，测试中用来模拟跨分区移动失败。
    """

    def __init__(self, rename: Callable[[Path, Path], None] = os.rename) -> None:
        self._rename = rename

    def publish(self, src: Path, dst: Path) -> PublishMethod:
        """发布 src 到 dst，返回实际采用的方式"""
        if not src.exists():
            if dst.exists():
                return "skipped"
            raise PublishError(f"源目录不存在: {src}")

        try:
            self._rename(src, dst)
        except OSError as e:
            logger.info("移动失败 (%s)，改为复制: %s -> %s", e, src, dst)
        else:
            logger.debug("已移动: %s -> %s", src, dst)
            return "moved"

        try:
            mirror(src, dst)
        except CopyError as e:
            raise PublishError(f"发布失败: {src} -> {dst}: {e}") from e
        return "copied"
