"""Typed configuration loading.

``shipyard.toml`` describes the product, the branches each channel builds
from, the per-platform toolchain commands, naming overrides and the publish
destinations. Secrets never live here; see ``shipyard.release.secrets``.

Example:
    [product]
    name = "Zettlr"
    version_file = "package.json"

    [platforms.windows]
    architectures = ["x64", "arm64"]
    package = [["yarn", "package:win-{arch}"], ["yarn", "release:win-{arch}"]]
    require_signing = true

    [[naming.rules]]
    platform = "linux"
    arch = "x64"
    ext = "deb"
    arch_label = "amd64"
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from shipyard.core.result import Err, Ok, Result
from shipyard.core.structured import (
    StrDict,
    as_obj_list,
    as_str_dict,
    get_bool,
    get_int,
    get_list,
    get_str,
    get_str_list,
    get_table,
)
from shipyard.release.model import Arch, Platform
from shipyard.release.naming import (
    DEFAULT_RAW_TEMPLATE,
    NamingRule,
    NamingTable,
    default_naming_table,
)

__all__ = [
    "BranchesConfig",
    "BuildConfig",
    "Config",
    "ConfigError",
    "DEFAULT_BUILD_TIMEOUT_SECONDS",
    "NightlyConfig",
    "NotesPolicy",
    "PLACEHOLDER_NOTES",
    "PathsConfig",
    "PlatformConfig",
    "ProductConfig",
    "ReleaseConfig",
    "load_config",
    "load_config_or_default",
]

# Packaging plus notarization of one platform regularly takes most of an hour.
DEFAULT_BUILD_TIMEOUT_SECONDS = 3 * 60 * 60

PLACEHOLDER_NOTES = "If you can read this, we have forgotten to fill in the changelog. Sorry!"

NotesPolicy = Literal["placeholder", "block"]


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class ProductConfig:
    name: str = "App"
    # Explicit version wins over version_file.
    version: str | None = None
    version_file: str = "package.json"


@dataclass(frozen=True, slots=True)
class BranchesConfig:
    stable: str = "master"
    nightly: str = "develop"


@dataclass(frozen=True, slots=True)
class PathsConfig:
    """Directories relative to the project root."""

    build_dir: str = "release"
    staging_dir: str = "release-staging"


@dataclass(frozen=True, slots=True)
class BuildConfig:
    timeout_seconds: int = DEFAULT_BUILD_TIMEOUT_SECONDS


def _default_package_commands() -> tuple[tuple[str, ...], ...]:
    return (
        ("yarn", "package:{platform}-{arch}"),
        ("yarn", "release:{platform}-{arch}"),
    )


@dataclass(frozen=True, slots=True)
class PlatformConfig:
    """How one platform is packaged and signed.

    Command templates accept ``{product}``, ``{version}``, ``{platform}``
    and ``{arch}`` placeholders (plus ``{file}`` for ``sign``).
    """

    platform: Platform
    architectures: tuple[Arch, ...] = (Arch.X64, Arch.ARM64)
    package: tuple[tuple[str, ...], ...] = field(default_factory=_default_package_commands)
    sign: tuple[str, ...] | None = None
    require_signing: bool = False


def _default_platforms() -> tuple[PlatformConfig, ...]:
    return (
        PlatformConfig(Platform.WINDOWS),
        PlatformConfig(Platform.MACOS),
        PlatformConfig(Platform.LINUX),
    )


@dataclass(frozen=True, slots=True)
class NightlyConfig:
    """Fixed files shipped next to nightly artifacts, and the rsync flags."""

    index: str = "scripts/assets/nightly-index.php"
    preview: str = "scripts/assets/nightly-sm_preview.png"
    logo: str = "resources/icons/png/512x512.png"
    # verbose, compress, human-readable, recursive, delete remote-only files
    rsync_args: tuple[str, ...] = ("-vzhr", "--delete")


_NIGHTLY_DEFAULTS = NightlyConfig()


@dataclass(frozen=True, slots=True)
class ReleaseConfig:
    repo: str | None = None
    notes: str = ""
    notes_policy: NotesPolicy = "placeholder"


@dataclass(frozen=True, slots=True)
class Config:
    """Main configuration container."""

    product: ProductConfig = field(default_factory=ProductConfig)
    branches: BranchesConfig = field(default_factory=BranchesConfig)
    paths: PathsConfig = field(default_factory=PathsConfig)
    build: BuildConfig = field(default_factory=BuildConfig)
    platforms: tuple[PlatformConfig, ...] = field(default_factory=_default_platforms)
    naming: NamingTable = field(default_factory=default_naming_table)
    nightly: NightlyConfig = field(default_factory=NightlyConfig)
    release: ReleaseConfig = field(default_factory=ReleaseConfig)

    def platform(self, platform: Platform) -> PlatformConfig:
        for pc in self.platforms:
            if pc.platform is platform:
                return pc
        return PlatformConfig(platform)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from a mapping (parsed TOML).

        Raises:
            ValueError: On unknown platforms, architectures or policies.
        """
        product: StrDict = get_table(data, "product") or {}
        branches: StrDict = get_table(data, "branches") or {}
        paths: StrDict = get_table(data, "paths") or {}
        build: StrDict = get_table(data, "build") or {}
        nightly: StrDict = get_table(data, "nightly") or {}
        release: StrDict = get_table(data, "release") or {}

        timeout = get_int(build, "timeout_seconds")
        if timeout is not None and timeout <= 0:
            raise ValueError("build.timeout_seconds must be positive")

        return cls(
            product=ProductConfig(
                name=get_str(product, "name") or "App",
                version=get_str(product, "version"),
                version_file=get_str(product, "version_file") or "package.json",
            ),
            branches=BranchesConfig(
                stable=get_str(branches, "stable") or "master",
                nightly=get_str(branches, "nightly") or "develop",
            ),
            paths=PathsConfig(
                build_dir=get_str(paths, "build_dir") or "release",
                staging_dir=get_str(paths, "staging_dir") or "release-staging",
            ),
            build=BuildConfig(timeout_seconds=timeout or DEFAULT_BUILD_TIMEOUT_SECONDS),
            platforms=_parse_platforms(get_table(data, "platforms")),
            naming=_parse_naming(get_table(data, "naming")),
            nightly=NightlyConfig(
                index=get_str(nightly, "index") or _NIGHTLY_DEFAULTS.index,
                preview=get_str(nightly, "preview") or _NIGHTLY_DEFAULTS.preview,
                logo=get_str(nightly, "logo") or _NIGHTLY_DEFAULTS.logo,
                rsync_args=tuple(
                    get_str_list(nightly, "rsync_args") or _NIGHTLY_DEFAULTS.rsync_args
                ),
            ),
            release=ReleaseConfig(
                repo=get_str(release, "repo"),
                notes=get_str(release, "notes") or "",
                notes_policy=_parse_notes_policy(get_str(release, "notes_policy")),
            ),
        )


def _parse_platforms(table: StrDict | None) -> tuple[PlatformConfig, ...]:
    if not table:
        return _default_platforms()

    out: list[PlatformConfig] = []
    for name in table:
        platform = Platform.parse(name)
        if platform is None:
            raise ValueError(f"unknown platform: {name}")
        entry = get_table(table, name) or {}

        arch_names = get_str_list(entry, "architectures") or ["x64", "arm64"]
        archs: list[Arch] = []
        for arch_name in arch_names:
            arch = Arch.parse(arch_name)
            if arch is None:
                raise ValueError(f"{name}: unknown architecture: {arch_name}")
            archs.append(arch)

        package = _parse_commands(entry, "package") or _default_package_commands()
        sign = get_str_list(entry, "sign")

        out.append(
            PlatformConfig(
                platform=platform,
                architectures=tuple(archs),
                package=package,
                sign=tuple(sign) if sign else None,
                require_signing=bool(get_bool(entry, "require_signing")),
            )
        )
    return tuple(out)


def _parse_commands(entry: StrDict, key: str) -> tuple[tuple[str, ...], ...] | None:
    raw = get_list(entry, key)
    if raw is None:
        return None
    commands: list[tuple[str, ...]] = []
    for item in raw:
        argv = as_obj_list(item)
        if not argv or not all(isinstance(a, str) for a in argv):
            raise ValueError(f"{key}: each command must be a non-empty list of strings")
        commands.append(tuple(str(a) for a in argv))
    return tuple(commands)


def _parse_naming(table: StrDict | None) -> NamingTable:
    base = default_naming_table()
    if not table:
        return base

    mode = get_str(table, "mode") or "extend"
    if mode not in ("extend", "replace"):
        raise ValueError(f"naming.mode must be 'extend' or 'replace', got: {mode}")

    rules: list[NamingRule] = []
    for item in get_list(table, "rules") or []:
        entry = as_str_dict(item)
        if entry is None:
            raise ValueError("naming.rules entries must be tables")
        platform_name = get_str(entry, "platform") or ""
        arch_name = get_str(entry, "arch") or ""
        platform = Platform.parse(platform_name)
        arch = Arch.parse(arch_name)
        ext = get_str(entry, "ext")
        if platform is None or arch is None or ext is None:
            raise ValueError(
                f"naming rule needs platform, arch and ext: {platform_name}/{arch_name}/{ext}"
            )
        rules.append(
            NamingRule(
                platform=platform,
                arch=arch,
                ext=ext,
                arch_label=get_str(entry, "arch_label") or arch.value,
                raw_template=get_str(entry, "raw") or DEFAULT_RAW_TEMPLATE,
            )
        )

    if mode == "replace":
        return NamingTable(rules)
    return base.with_overrides(rules)


def _parse_notes_policy(value: str | None) -> NotesPolicy:
    if value is None or value == "placeholder":
        return "placeholder"
    if value == "block":
        return "block"
    raise ValueError(f"release.notes_policy must be 'placeholder' or 'block', got: {value}")


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    """Parse a TOML file, handling read and parse errors."""
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def load_config(path: Path) -> Result[Config, ConfigError]:
    """Load and parse configuration from a TOML file.

    Args:
        path: Path to shipyard.toml

    Returns:
        Ok(Config) on success, Err(ConfigError) on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(Config.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))


def load_config_or_default(path: Path) -> Result[Config, ConfigError]:
    """Like ``load_config``, but a missing file means the default config.

    A file that exists but is broken is still an error.
    """
    if not path.exists():
        return Ok(Config())
    return load_config(path)
