"""fastinstall 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
"""

import os

import click

from fastinstall import __version__
from fastinstall.core.exceptions import FastInstallError
from fastinstall.utils.logger import setup_logging


def fail(exc: FastInstallError) -> click.ClickException:
    """业务异常转为 CLI 错误输出（退出码 1）"""
    where = " ".join(filter(None, (exc.stage, exc.dependency)))
    prefix = f"[{exc.code}]" + (f" ({where})" if where else "")
    return click.ClickException(f"{prefix} {exc}")


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """fastinstall - 带缓存的 npm 依赖并行安装"""
    setup_logging(
        level=os.getenv("FASTINSTALL_LOG_LEVEL", "INFO"),
        json_output=os.getenv("FASTINSTALL_LOG_JSON", "") == "1",
    )


# 注册各领域子命令
from fastinstall.cli.cmd_install import register as _reg_install  # noqa: E402
from fastinstall.cli.cmd_cache import register as _reg_cache  # noqa: E402

_reg_install(main)
_reg_cache(main)
