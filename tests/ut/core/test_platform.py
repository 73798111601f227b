"""目标平台探测测试"""

from __future__ import annotations

import pytest
from conftest import FakeNodeExecutor

from fastinstall.core.exceptions import ConfigError
from fastinstall.core.platform import detect_platform, probe_node


class TestProbeNode:
    def test_parses_output(self) -> None:
        info = probe_node(executor=FakeNodeExecutor("v20.11.0 arm64 115"))
        assert info is not None
        assert (info.node_version, info.arch, info.abi_tag) == ("v20.11.0", "arm64", "115")

    def test_node_missing(self) -> None:
        assert probe_node(executor=FakeNodeExecutor(returncode=127)) is None

    def test_unexpected_output(self) -> None:
        assert probe_node(executor=FakeNodeExecutor("garbage")) is None


class TestDetectPlatform:
    def test_uses_probe(self, node_executor: FakeNodeExecutor) -> None:
        info = detect_platform(executor=node_executor)
        assert (info.arch, info.abi_tag) == ("x64", "108")

    def test_config_overrides_probe(self, node_executor: FakeNodeExecutor) -> None:
        info = detect_platform(arch="arm64", abi_tag="115", executor=node_executor)
        assert info.node_version == "v18.19.0"
        assert (info.arch, info.abi_tag) == ("arm64", "115")

    def test_explicit_values_without_node(self) -> None:
        info = detect_platform(arch="x64", abi_tag="93", executor=FakeNodeExecutor(returncode=127))
        assert info.node_version == "unknown"
        assert info.abi_tag == "93"

    def test_no_node_and_no_config(self) -> None:
        with pytest.raises(ConfigError, match="arch"):
            detect_platform(executor=FakeNodeExecutor(returncode=127))
