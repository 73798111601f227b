"""CLI — 缓存查看命令"""

from __future__ import annotations

import click

from fastinstall.core.config import get_config
from fastinstall.core.dep.cache import CacheStore
from fastinstall.utils.paths import resolve_path


def register(group: click.Group) -> None:
    group.add_command(cache)


def _store(cache_dir: str | None) -> CacheStore:
    return CacheStore(resolve_path(cache_dir or get_config().cache_dir))


@click.group()
def cache() -> None:
    """查看本地包缓存"""


@cache.command(name="list")
@click.option("--cache-dir", default=None, help="缓存目录，默认 ~/.npm-fast-install")
@click.option("--name", default=None, help="只列出指定包")
def list_entries(cache_dir: str | None, name: str | None) -> None:
    """列出缓存中的全部条目"""
    store = _store(cache_dir)
    keys = store.list_entries(name=name)
    if not keys:
        click.echo(f"缓存为空: {store.root}")
        return
    for k in keys:
        click.echo(f"  {k.name:30s} {k.version:12s} {k.arch:8s} abi {k.abi_tag}")
    click.echo(f"共 {len(keys)} 项")


@cache.command(name="key")
@click.argument("name")
@click.argument("version")
@click.option("--arch", required=True, help="目标架构")
@click.option("--abi", "abi_tag", required=True, help="目标模块 ABI 版本")
@click.option("--cache-dir", default=None, help="缓存目录，默认 ~/.npm-fast-install")
def show_key(name: str, version: str, arch: str, abi_tag: str, cache_dir: str | None) -> None:
    """显示缓存键对应的目录及是否存在"""
    store = _store(cache_dir)
    key = store.key_for(name, version, arch, abi_tag)
    state = "已缓存" if store.exists(key) else "未缓存"
    click.echo(f"{store.path_for(key)} [{state}]")
