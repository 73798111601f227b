"""CLI — 安装命令"""

from __future__ import annotations

import click

from fastinstall.cli import fail
from fastinstall.core.config import init_config
from fastinstall.core.exceptions import FastInstallError
from fastinstall.core.installer import Installer, platform_summary
from fastinstall.utils.yaml_io import save_yaml


def register(group: click.Group) -> None:
    group.add_command(install)


@click.command()
@click.argument("directory", default="", required=False)
@click.option("--config", "-c", "config_path", default="fastinstall.yml", help="配置文件路径（不存在则使用默认值）")
@click.option("--cache-dir", default=None, help="缓存目录，默认 ~/.npm-fast-install")
@click.option("--max-tasks", "-j", type=click.IntRange(min=1), default=None, help="最大并行任务数，默认 5")
@click.option("--production", is_flag=True, help="只安装 dependencies，不装 dev/peer 依赖")
@click.option("--keep", is_flag=True, help="保留已有 node_modules，不做备份")
@click.option("--arch", default=None, help="目标架构，默认取本机 node")
@click.option("--abi", "abi_tag", default=None, help="目标模块 ABI 版本，默认取本机 node")
@click.option("--registry", default=None, help="npm 仓库地址")
@click.option("--allow-shrinkwrap", is_flag=True, help="安装时遵循 shrinkwrap / package-lock")
@click.option("--output", "-o", default=None, help="把安装结果写入 YAML 文件")
def install(
    directory: str, config_path: str, cache_dir: str | None, max_tasks: int | None,
    production: bool, keep: bool, arch: str | None, abi_tag: str | None,
    registry: str | None, allow_shrinkwrap: bool, output: str | None,
) -> None:
    """安装 DIRECTORY（默认当前目录）下 package.json 声明的依赖"""
    try:
        cfg = init_config(
            config_path,
            working_dir=directory or None,
            cache_dir=cache_dir,
            max_tasks=max_tasks,
            # 开关参数只在显式给出时覆盖配置文件
            production=production or None,
            keep=keep or None,
            arch=arch,
            abi_tag=abi_tag,
            registry=registry,
            allow_shrinkwrap=allow_shrinkwrap or None,
        )
        result = Installer().run(cfg)
    except FastInstallError as e:
        raise fail(e) from e

    click.echo(f"已安装 {len(result.modules)} 个模块 ({platform_summary(result.platform)})")
    for name, rec in sorted(result.modules.items()):
        click.echo(f"  {name:30s} {rec.version}")
    if result.stats:
        click.echo(
            "缓存命中 {cached}，新拉取 {fetched}，放弃 {abandoned}".format(**result.stats)
        )
    if output:
        save_yaml(output, result.to_dict())
        click.echo(f"结果已写入: {output}")
