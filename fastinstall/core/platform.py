"""目标平台探测

缓存键中的 arch / abi_tag 默认取本机 node:
  process.arch            -> arch
  process.versions.modules -> abi_tag（原生模块 ABI 版本）

配置中显式给出时以配置为准；node 不可用且未配置时报 ConfigError。
"""

from __future__ import annotations

import logging

from fastinstall.core.dep.models import PlatformInfo
from fastinstall.core.exceptions import ConfigError
from fastinstall.utils.shell import CommandExecutor, get_executor

logger = logging.getLogger(__name__)

_PROBE = "[process.version, process.arch, process.versions.modules].join(' ')"


def probe_node(node_bin: str = "node", executor: CommandExecutor | None = None) -> PlatformInfo | None:
    """运行 node 读取版本/架构/ABI，不可用时返回 None"""
    r = (executor or get_executor()).execute([node_bin, "-p", _PROBE])
    if not r.success:
        logger.debug("node 探测失败 (rc=%d): %s", r.returncode, r.stderr.strip())
        return None
    parts = r.stdout.split()
    if len(parts) != 3:
        logger.debug("node 探测输出无法识别: %r", r.stdout)
        return None
    return PlatformInfo(node_version=parts[0], arch=parts[1], abi_tag=parts[2])


def detect_platform(
    *,
    arch: str = "",
    abi_tag: str = "",
    node_bin: str = "node",
    executor: CommandExecutor | None = None,
) -> PlatformInfo:
    probed = probe_node(node_bin, executor)
    if probed is None:
        if not (arch and abi_tag):
            raise ConfigError(
                f"无法运行 {node_bin} 探测目标平台，请显式指定 arch 和 abi_tag",
            )
        return PlatformInfo(node_version="unknown", arch=arch, abi_tag=abi_tag)

    return PlatformInfo(
        node_version=probed.node_version,
        arch=arch or probed.arch,
        abi_tag=abi_tag or probed.abi_tag,
    )
