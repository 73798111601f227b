"""YAML 读写测试"""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from fastinstall.utils.yaml_io import load_yaml, save_yaml


class TestYamlIO:
    def test_missing_file(self, tmp_path: Path) -> None:
        assert load_yaml(tmp_path / "none.yml") == {}

    def test_empty_file(self, tmp_path: Path) -> None:
        p = tmp_path / "empty.yml"
        p.write_text("", encoding="utf-8")
        assert load_yaml(p) == {}

    def test_non_dict(self, tmp_path: Path) -> None:
        p = tmp_path / "list.yml"
        p.write_text("- a\n- b\n", encoding="utf-8")
        assert load_yaml(p) == {}

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        p = tmp_path / "bad.yml"
        p.write_text("a: [unclosed\n", encoding="utf-8")
        with pytest.raises(yaml.YAMLError):
            load_yaml(p)

    def test_save_creates_parents_and_keeps_order(self, tmp_path: Path) -> None:
        p = tmp_path / "out" / "result.yml"
        save_yaml(p, {"node": "v18", "arch": "x64", "模块": 2})
        assert list(load_yaml(p)) == ["node", "arch", "模块"]
        assert not list(p.parent.glob("*.tmp"))
