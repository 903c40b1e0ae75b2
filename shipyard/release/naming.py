"""Canonical artifact naming.

Toolchains do not agree on how they name their outputs (electron-builder
drops the architecture from the Windows arm64 installer, Linux packagers say
``amd64``/``x86_64``/``aarch64``). Every output goes through a rule keyed by
(platform, arch, extension) that maps the raw name to the published one.
Supporting a new format or architecture means adding a rule, not a branch.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from shipyard.release.model import Arch, Platform

__all__ = [
    "DEFAULT_RAW_TEMPLATE",
    "NamingRule",
    "NamingTable",
    "default_naming_table",
]

DEFAULT_RAW_TEMPLATE = "{product}-{version}-{arch}.{ext}"


@dataclass(frozen=True, slots=True)
class NamingRule:
    platform: Platform
    arch: Arch
    ext: str
    # Architecture token in the published name (e.g. "x64", "amd64").
    arch_label: str
    # Name the toolchain writes; placeholders: product, version, arch, ext.
    raw_template: str = DEFAULT_RAW_TEMPLATE

    @property
    def key(self) -> tuple[Platform, Arch, str]:
        return (self.platform, self.arch, self.ext)

    def canonical_name(self, product: str, version: str) -> str:
        return f"{product}-{version}-{self.arch_label}.{self.ext}"

    def raw_name(self, product: str, version: str) -> str:
        return self.raw_template.format(
            product=product,
            version=version,
            arch=self.arch_label,
            ext=self.ext,
        )


class NamingTable:
    """Ordered set of naming rules, at most one per (platform, arch, ext)."""

    def __init__(self, rules: Iterable[NamingRule] = ()) -> None:
        self._rules: dict[tuple[Platform, Arch, str], NamingRule] = {}
        for rule in rules:
            self._rules[rule.key] = rule

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[NamingRule]:
        return iter(self._rules.values())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NamingTable):
            return NotImplemented
        return list(self._rules.values()) == list(other._rules.values())

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"NamingTable({len(self._rules)} rules)"

    def rules_for(self, platform: Platform, arch: Arch) -> tuple[NamingRule, ...]:
        return tuple(r for r in self._rules.values() if r.platform is platform and r.arch is arch)

    def with_overrides(self, rules: Iterable[NamingRule]) -> NamingTable:
        """Return a new table where ``rules`` replace or extend this one."""
        merged = NamingTable(self._rules.values())
        for rule in rules:
            merged._rules[rule.key] = rule
        return merged


def default_naming_table() -> NamingTable:
    return NamingTable(
        [
            NamingRule(Platform.WINDOWS, Arch.X64, "exe", "x64"),
            # The arm64 NSIS build also carries ia32, so electron-builder
            # omits the architecture from the installer name.
            NamingRule(
                Platform.WINDOWS,
                Arch.ARM64,
                "exe",
                "arm64",
                raw_template="{product}-{version}.{ext}",
            ),
            NamingRule(Platform.MACOS, Arch.X64, "dmg", "x64"),
            NamingRule(Platform.MACOS, Arch.ARM64, "dmg", "arm64"),
            NamingRule(Platform.LINUX, Arch.X64, "AppImage", "x64"),
            NamingRule(Platform.LINUX, Arch.ARM64, "AppImage", "arm64"),
        ]
    )
