"""Per-platform packaging and signing.

A ``PlatformBuilder`` turns one ``BuildTarget`` into canonically named,
signed installer files. Packaging and signing are opaque: they are reached
through the ``Toolchain`` and ``Signer`` protocols, which the production
code implements by running configured commands.

Nothing here retries. Packaging is expensive and signing/notarization has
external side effects; re-running is a decision for whoever started the
pipeline.
"""

from __future__ import annotations

import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Protocol

from shipyard.core.result import Err, Ok, Result
from shipyard.output.console import ConsoleProtocol, Style
from shipyard.platform.process import ProcessError
from shipyard.platform.process import run as run_process
from shipyard.release.errors import BuildError
from shipyard.release.model import Arch, ArtifactRef, BuildTarget, Platform
from shipyard.release.naming import NamingRule, NamingTable
from shipyard.release.secrets import PlatformCredentials, SigningCredentials

__all__ = [
    "CommandSigner",
    "CommandToolchain",
    "PlatformBuilder",
    "Signer",
    "Toolchain",
]


class Toolchain(Protocol):
    """Produces the raw installer files of one architecture in ``out_dir``."""

    def package(
        self,
        *,
        platform: Platform,
        arch: Arch,
        version: str,
        out_dir: Path,
        env: Mapping[str, str],
        timeout: float | None,
    ) -> Result[None, ProcessError]: ...


class Signer(Protocol):
    """Signs (and, where applicable, notarizes) one produced file in place."""

    def sign(
        self,
        *,
        platform: Platform,
        arch: Arch,
        path: Path,
        credentials: PlatformCredentials,
        timeout: float | None,
    ) -> Result[None, ProcessError]: ...


def _expand(template: tuple[str, ...], values: Mapping[str, str]) -> list[str]:
    return [part.format(**values) for part in template]


@dataclass(frozen=True, slots=True)
class CommandToolchain:
    """Runs the configured package commands for a platform, in order.

    Signing credentials arrive as environment variables, so toolchains that
    sign while packaging (electron-builder reads ``CSC_LINK``) see them too.
    """

    project_root: Path
    product: str
    commands: Mapping[Platform, tuple[tuple[str, ...], ...]]

    def package(
        self,
        *,
        platform: Platform,
        arch: Arch,
        version: str,
        out_dir: Path,
        env: Mapping[str, str],
        timeout: float | None,
    ) -> Result[None, ProcessError]:
        values = {
            "product": self.product,
            "version": version,
            "platform": str(platform),
            "arch": str(arch),
            "arch_short": arch.short,
            "out_dir": str(out_dir),
        }
        deadline = None if timeout is None else time.monotonic() + timeout
        for template in self.commands.get(platform, ()):
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            result = run_process(
                _expand(template, values),
                cwd=self.project_root,
                env=env,
                timeout=remaining,
            )
            if isinstance(result, Err):
                return result
        return Ok(None)


@dataclass(frozen=True, slots=True)
class CommandSigner:
    project_root: Path
    commands: Mapping[Platform, tuple[str, ...]]

    def sign(
        self,
        *,
        platform: Platform,
        arch: Arch,
        path: Path,
        credentials: PlatformCredentials,
        timeout: float | None,
    ) -> Result[None, ProcessError]:
        template = self.commands.get(platform)
        if template is None:
            return Ok(None)
        values = {
            "platform": str(platform),
            "arch": str(arch),
            "arch_short": arch.short,
            "file": str(path),
        }
        result = run_process(
            _expand(template, values),
            cwd=self.project_root,
            env=credentials.env,
            timeout=timeout,
        )
        if isinstance(result, Err):
            return result
        return Ok(None)


class PlatformBuilder:
    """Builds every architecture of a target, one after the other."""

    def __init__(
        self,
        *,
        toolchain: Toolchain,
        naming: NamingTable,
        product: str,
        out_dir: Path,
        console: ConsoleProtocol,
        signer: Signer | None = None,
        require_signing: frozenset[Platform] = frozenset(),
    ) -> None:
        self._toolchain = toolchain
        self._signer = signer
        self._naming = naming
        self._product = product
        self._out_dir = out_dir
        self._console = console
        self._require_signing = require_signing

    def build(
        self,
        target: BuildTarget,
        credentials: SigningCredentials,
        version: str,
        *,
        deadline: float | None = None,
    ) -> Result[tuple[ArtifactRef, ...], BuildError]:
        """Package, sign and canonicalise every architecture of ``target``.

        Args:
            target: Platform and architectures to build.
            credentials: Signing material; platforms without any are not signed.
            version: Resolved version, embedded in every file name.
            deadline: ``time.monotonic()`` value after which the build fails
                with a timeout error.

        Returns:
            Ok(artifacts) in architecture order, or the first BuildError.
        """
        platform = target.platform
        creds = credentials.for_platform(platform)
        if creds is None and platform in self._require_signing:
            return Err(
                BuildError(
                    platform=platform,
                    arch=None,
                    kind="credentials",
                    message="signing credentials missing",
                    hint="Provide the platform's signing secrets or disable require_signing",
                )
            )

        self._out_dir.mkdir(parents=True, exist_ok=True)
        artifacts: list[ArtifactRef] = []
        for arch in target.architectures:
            built = self._build_arch(platform, arch, creds, version, deadline)
            if isinstance(built, Err):
                return built
            artifacts.extend(built.value)
        return Ok(tuple(artifacts))

    def _build_arch(
        self,
        platform: Platform,
        arch: Arch,
        creds: PlatformCredentials | None,
        version: str,
        deadline: float | None,
    ) -> Result[list[ArtifactRef], BuildError]:
        rules = self._naming.rules_for(platform, arch)
        if not rules:
            return Err(
                BuildError(
                    platform=platform,
                    arch=arch,
                    kind="output_missing",
                    message="no artifact naming rule",
                    hint=f"Add a naming rule for {platform}/{arch}",
                )
            )

        timeout = _remaining(deadline)
        if timeout is not None and timeout <= 0:
            return Err(_timeout_error(platform, arch, "before packaging"))

        cleared = self._clear_outputs(rules, version)
        if isinstance(cleared, Err):
            return Err(
                BuildError(
                    platform=platform,
                    arch=arch,
                    kind="output_missing",
                    message=cleared.error,
                    hint=str(self._out_dir),
                )
            )

        self._console.print(f"{platform}/{arch}: packaging {version}", Style.DIM)
        packaged = self._toolchain.package(
            platform=platform,
            arch=arch,
            version=version,
            out_dir=self._out_dir,
            env=creds.env if creds is not None else {},
            timeout=timeout,
        )
        if isinstance(packaged, Err):
            return Err(
                _process_error(platform, arch, "toolchain", "packaging failed", packaged.error)
            )

        out: list[ArtifactRef] = []
        for rule in rules:
            raw = self._out_dir / rule.raw_name(self._product, version)
            if not raw.is_file():
                return Err(
                    BuildError(
                        platform=platform,
                        arch=arch,
                        kind="output_missing",
                        message=f"expected output not found: {raw.name}",
                        hint=str(raw),
                    )
                )

            if creds is not None and self._signer is not None:
                timeout = _remaining(deadline)
                if timeout is not None and timeout <= 0:
                    return Err(_timeout_error(platform, arch, "before signing"))
                self._console.print(f"{platform}/{arch}: signing {raw.name}", Style.DIM)
                signed = self._signer.sign(
                    platform=platform,
                    arch=arch,
                    path=raw,
                    credentials=creds,
                    timeout=timeout,
                )
                if isinstance(signed, Err):
                    return Err(
                        _process_error(platform, arch, "signing", "signing failed", signed.error)
                    )

            ref = self._canonicalise(rule, raw, version)
            if isinstance(ref, Err):
                return Err(
                    BuildError(
                        platform=platform,
                        arch=arch,
                        kind="output_missing",
                        message=ref.error,
                        hint=str(raw),
                    )
                )
            out.append(ref.value)
        return Ok(out)

    def _clear_outputs(self, rules: Sequence[NamingRule], version: str) -> Result[None, str]:
        """Remove this arch's outputs left over from an earlier run of the same version."""
        for rule in rules:
            raw = rule.raw_name(self._product, version)
            for name in (raw, rule.canonical_name(self._product, version)):
                try:
                    (self._out_dir / name).unlink(missing_ok=True)
                except OSError as e:
                    return Err(f"cannot remove stale output {name}: {e}")
        return Ok(None)

    def _canonicalise(self, rule: NamingRule, raw: Path, version: str) -> Result[ArtifactRef, str]:
        canonical = self._out_dir / rule.canonical_name(self._product, version)
        try:
            if raw != canonical:
                raw.replace(canonical)
            size = canonical.stat().st_size
        except OSError as e:
            return Err(f"failed to rename {raw.name} -> {canonical.name}: {e}")
        return Ok(ArtifactRef(file_name=canonical.name, source_path=canonical, size_bytes=size))


def _remaining(deadline: float | None) -> float | None:
    if deadline is None:
        return None
    return deadline - time.monotonic()


def _timeout_error(platform: Platform, arch: Arch, when: str) -> BuildError:
    return BuildError(
        platform=platform,
        arch=arch,
        kind="timeout",
        message=f"build time budget exhausted {when}",
    )


def _process_error(
    platform: Platform,
    arch: Arch,
    kind: Literal["toolchain", "signing"],
    message: str,
    error: ProcessError,
) -> BuildError:
    if error.timed_out:
        return BuildError(
            platform=platform,
            arch=arch,
            kind="timeout",
            message=f"{message}: {error}",
            hint=error.tail() or None,
        )
    return BuildError(
        platform=platform,
        arch=arch,
        kind=kind,
        message=f"{message}: {error}",
        hint=error.tail() or None,
    )
