"""CLI 系统测试（click CliRunner）"""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner
from conftest import FakeNodeExecutor, FakePackageResolver, seed_cache, write_package_json

from fastinstall.cli import main
from fastinstall.cli import cmd_install
from fastinstall.core.dep.cache import CacheStore
from fastinstall.core.exceptions import FetchError
from fastinstall.core.installer import Installer
from fastinstall.utils.logger import reset_logging


@pytest.fixture(autouse=True)
def _clean_logging():
    yield
    reset_logging()


@pytest.fixture
def fake_installer(monkeypatch: pytest.MonkeyPatch) -> FakePackageResolver:
    resolver = FakePackageResolver()
    monkeypatch.setattr(
        cmd_install, "Installer",
        lambda: Installer(package_resolver=resolver, executor=FakeNodeExecutor()),
    )
    return resolver


class TestInstallCommand:
    def test_install_and_write_output(
        self, tmp_path: Path, fake_installer: FakePackageResolver,
    ) -> None:
        proj = tmp_path / "app"
        write_package_json(proj, dependencies={"left-pad": "1.0.0", "chalk": "^2.0.0"})
        out = tmp_path / "result.yml"

        r = CliRunner().invoke(main, [
            "install", str(proj),
            "--config", str(tmp_path / "none.yml"),
            "--cache-dir", str(tmp_path / "cache"),
            "-j", "2", "-o", str(out),
        ])

        assert r.exit_code == 0, r.output
        assert "已安装 2 个模块" in r.output
        data = yaml.safe_load(out.read_text(encoding="utf-8"))
        assert data["modules"]["chalk"]["version"] == "2.4.2"
        assert data["abi"] == "108"

    def test_failure_exit_code(
        self, tmp_path: Path, fake_installer: FakePackageResolver,
    ) -> None:
        fake_installer.fetch_failures["chalk"] = FetchError("tarball 404")
        proj = tmp_path / "app"
        write_package_json(proj, dependencies={"chalk": "^2.0.0"})

        r = CliRunner().invoke(main, [
            "install", str(proj),
            "--config", str(tmp_path / "none.yml"),
            "--cache-dir", str(tmp_path / "cache"),
        ])

        assert r.exit_code == 1
        assert "[FETCH_ERROR]" in r.output
        assert "tarball 404" in r.output

    def test_malformed_config_file(self, tmp_path: Path) -> None:
        bad = tmp_path / "fastinstall.yml"
        bad.write_text("max_tasks: [8\n", encoding="utf-8")

        r = CliRunner().invoke(main, ["install", str(tmp_path), "--config", str(bad)])

        assert r.exit_code == 1
        assert "[CONFIG_ERROR]" in r.output

    def test_invalid_max_tasks(self, tmp_path: Path) -> None:
        r = CliRunner().invoke(main, ["install", str(tmp_path), "-j", "0"])
        assert r.exit_code == 2


class TestCacheCommands:
    def test_list(self, tmp_path: Path) -> None:
        store = CacheStore(tmp_path / "cache")
        seed_cache(store, "chalk", "2.4.2")
        r = CliRunner().invoke(main, ["cache", "list", "--cache-dir", str(store.root)])
        assert r.exit_code == 0
        assert "chalk" in r.output
        assert "共 1 项" in r.output

    def test_list_empty(self, tmp_path: Path) -> None:
        r = CliRunner().invoke(main, ["cache", "list", "--cache-dir", str(tmp_path / "none")])
        assert r.exit_code == 0
        assert "缓存为空" in r.output

    def test_key(self, tmp_path: Path) -> None:
        store = CacheStore(tmp_path / "cache")
        seed_cache(store, "chalk", "2.4.2")
        r = CliRunner().invoke(main, [
            "cache", "key", "chalk", "2.4.2", "--arch", "x64", "--abi", "108",
            "--cache-dir", str(store.root),
        ])
        assert r.exit_code == 0
        assert "已缓存" in r.output
        assert str(Path("chalk") / "2.4.2" / "x64" / "108") in r.output


def test_version() -> None:
    r = CliRunner().invoke(main, ["--version"])
    assert r.exit_code == 0
    assert "0.1.0" in r.output
