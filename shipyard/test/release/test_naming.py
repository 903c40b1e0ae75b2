"""Tests for shipyard.release.naming module."""

from __future__ import annotations

from shipyard.release.model import Arch, Platform
from shipyard.release.naming import NamingRule, NamingTable, default_naming_table


class TestNamingRule:
    def test_canonical_name(self) -> None:
        rule = NamingRule(Platform.MACOS, Arch.ARM64, "dmg", "arm64")
        assert rule.canonical_name("Zettlr", "2.3.0") == "Zettlr-2.3.0-arm64.dmg"

    def test_raw_name_defaults_to_canonical(self) -> None:
        rule = NamingRule(Platform.LINUX, Arch.X64, "AppImage", "x64")
        assert rule.raw_name("Zettlr", "2.3.0") == rule.canonical_name("Zettlr", "2.3.0")

    def test_arch_label(self) -> None:
        rule = NamingRule(Platform.LINUX, Arch.X64, "deb", "amd64")
        assert rule.canonical_name("Zettlr", "2.3.0") == "Zettlr-2.3.0-amd64.deb"


class TestDefaultTable:
    def test_one_rule_per_platform_arch(self) -> None:
        table = default_naming_table()
        for platform in Platform:
            for arch in Arch:
                assert len(table.rules_for(platform, arch)) == 1

    def test_windows_arm64_raw_name_has_no_arch(self) -> None:
        (rule,) = default_naming_table().rules_for(Platform.WINDOWS, Arch.ARM64)
        assert rule.raw_name("Zettlr", "2.3.0") == "Zettlr-2.3.0.exe"
        assert rule.canonical_name("Zettlr", "2.3.0") == "Zettlr-2.3.0-arm64.exe"

    def test_canonical_names_are_unique(self) -> None:
        names = [r.canonical_name("Zettlr", "2.3.0") for r in default_naming_table()]
        assert len(names) == len(set(names)) == 6


class TestNamingTable:
    def test_later_rule_replaces_same_key(self) -> None:
        table = NamingTable(
            [
                NamingRule(Platform.LINUX, Arch.X64, "deb", "x64"),
                NamingRule(Platform.LINUX, Arch.X64, "deb", "amd64"),
            ]
        )
        assert len(table) == 1
        assert next(iter(table)).arch_label == "amd64"

    def test_with_overrides_does_not_mutate(self) -> None:
        base = default_naming_table()
        extended = base.with_overrides([NamingRule(Platform.LINUX, Arch.ARM64, "deb", "arm64")])
        assert len(base) == 6
        assert len(extended) == 7
        assert base != extended
        assert base == default_naming_table()
