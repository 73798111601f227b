"""共享 fixture — 内存版 PackageResolver + fake 命令执行器

FakePackageResolver 按目录约定模拟 npm install:
  dest_dir/node_modules/<name>/package.json
测试无需 npm / node / 网络。
"""

from __future__ import annotations

import json
import threading
import time
from pathlib import Path

import pytest

from fastinstall.core.dep.cache import CacheStore
from fastinstall.core.dep.models import VersionListing
from fastinstall.core.exceptions import ResolutionError
from fastinstall.utils.shell import CommandResult

DEFAULT_CATALOG = {
    "left-pad": ("1.3.0", ["1.0.0", "1.1.0", "1.3.0"]),
    "chalk": ("2.4.2", ["1.1.3", "2.0.0", "2.3.0", "2.4.2", "3.0.0-beta.1"]),
    "lodash": ("4.17.21", ["4.17.20", "4.17.21"]),
}


class FakePackageResolver:
    """线程安全的内存包仓库"""

    def __init__(self, catalog: dict[str, tuple[str, list[str]]] | None = None) -> None:
        self.catalog = dict(DEFAULT_CATALOG if catalog is None else catalog)
        self.list_calls: list[str] = []
        self.fetch_calls: list[tuple[str, str]] = []
        self.fetch_delay: dict[str, float] = {}
        self.fetch_failures: dict[str, Exception] = {}
        self._lock = threading.Lock()

    def list_versions(self, name: str) -> VersionListing:
        with self._lock:
            self.list_calls.append(name)
        if name not in self.catalog:
            raise ResolutionError(f"404 Not Found: {name}", dependency=name)
        latest, versions = self.catalog[name]
        return VersionListing(
            latest=latest, versions=tuple(versions),
            metadata={"name": name, "version": latest},
        )

    def fetch_and_build(self, name: str, version: str, dest_dir: Path) -> None:
        with self._lock:
            self.fetch_calls.append((name, version))
        delay = self.fetch_delay.get(name)
        if delay:
            time.sleep(delay)
        if name in self.fetch_failures:
            raise self.fetch_failures[name]
        pkg_dir = dest_dir / "node_modules" / name
        pkg_dir.mkdir(parents=True, exist_ok=True)
        (pkg_dir / "package.json").write_text(
            json.dumps({"name": name, "version": version}), encoding="utf-8",
        )

    def fetch_count(self, name: str | None = None) -> int:
        return sum(1 for n, _ in self.fetch_calls if name is None or n == name)


class FakeNodeExecutor:
    """只响应 node -p 探测，其余命令按失败处理"""

    def __init__(self, output: str = "v18.19.0 x64 108", returncode: int = 0) -> None:
        self.output = output
        self.returncode = returncode
        self.calls: list[list[str]] = []

    def execute(self, args, *, cwd=".", env=None, timeout=None) -> CommandResult:
        self.calls.append(list(args))
        if args and args[0] == "node":
            return CommandResult(self.returncode, self.output + "\n", "")
        return CommandResult(127, "", "not found")


def write_package_json(project: Path, **sections: dict[str, str]) -> Path:
    project.mkdir(parents=True, exist_ok=True)
    path = project / "package.json"
    path.write_text(json.dumps({"name": "demo", **sections}), encoding="utf-8")
    return path


def seed_cache(store: CacheStore, name: str, version: str, arch: str = "x64", abi: str = "108") -> Path:
    """在缓存中预置一个已构建的条目"""
    entry = store.path_for(store.key_for(name, version, arch, abi))
    pkg = entry / name
    pkg.mkdir(parents=True)
    (pkg / "package.json").write_text(
        json.dumps({"name": name, "version": version}), encoding="utf-8",
    )
    return entry


@pytest.fixture
def fake_resolver() -> FakePackageResolver:
    return FakePackageResolver()


@pytest.fixture
def node_executor() -> FakeNodeExecutor:
    return FakeNodeExecutor()


@pytest.fixture
def cache_store(tmp_path: Path) -> CacheStore:
    store = CacheStore(tmp_path / "cache")
    store.ensure_root()
    return store


@pytest.fixture
def scratch_root(tmp_path: Path) -> Path:
    root = tmp_path / "scratch"
    root.mkdir()
    return root
