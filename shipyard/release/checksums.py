"""SHA-256 manifest: compute, persist, then verify from disk.

Two separate passes on purpose. The first hashes every staged artifact and
writes ``SHA256SUMS.txt`` in ``sha256sum`` format; the second reads that
file back and re-hashes every file it names. Anything that changed bytes
between staging and publication (a short copy, a flaky disk) shows up as a
mismatch before a single file leaves the machine.
"""

from __future__ import annotations

import hashlib
import re
from collections.abc import Sequence
from pathlib import Path

from shipyard.core.result import Err, Ok, Result
from shipyard.output.console import ConsoleProtocol
from shipyard.platform.files import atomic_write_text
from shipyard.release.errors import ChecksumError
from shipyard.release.model import ArtifactRef, ChecksumEntry

__all__ = [
    "CHECKSUM_FILE_NAME",
    "ChecksumVerifier",
    "compute_checksums",
    "format_checksum_file",
    "parse_checksum_file",
    "sha256_file",
    "verify_checksums",
]

CHECKSUM_FILE_NAME = "SHA256SUMS.txt"

# "<64 hex>  <name>" (text mode) or "<64 hex> *<name>" (binary mode).
_LINE_RE = re.compile(r"^([0-9a-fA-F]{64}) [ *](.+)$")


def sha256_file(path: Path) -> str:
    h = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


def format_checksum_file(entries: Sequence[ChecksumEntry]) -> str:
    return "".join(f"{e.digest}  {e.file_name}\n" for e in entries)


def parse_checksum_file(text: str) -> Result[list[tuple[str, str]], ChecksumError]:
    """Parse ``sha256sum`` output into (file name, lowercase digest) pairs."""
    out: list[tuple[str, str]] = []
    seen: set[str] = set()
    for lineno, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        m = _LINE_RE.match(line)
        if m is None:
            return Err(
                ChecksumError(
                    kind="malformed",
                    message=f"{CHECKSUM_FILE_NAME}:{lineno}: not '<sha256>  <file>': {line!r}",
                )
            )
        digest, name = m.group(1).lower(), m.group(2)
        if name in seen:
            return Err(
                ChecksumError(
                    kind="malformed",
                    message=f"{CHECKSUM_FILE_NAME}:{lineno}: duplicate entry for {name}",
                    file_name=name,
                )
            )
        seen.add(name)
        out.append((name, digest))
    return Ok(out)


def compute_checksums(
    artifacts: Sequence[ArtifactRef],
    manifest_path: Path,
) -> Result[tuple[ChecksumEntry, ...], ChecksumError]:
    """First pass: hash every artifact (sorted by name) and write the manifest."""
    entries: list[ChecksumEntry] = []
    for artifact in sorted(artifacts, key=lambda a: a.file_name):
        try:
            digest = sha256_file(artifact.source_path)
        except FileNotFoundError:
            return Err(
                ChecksumError(
                    kind="missing",
                    message=f"artifact not found: {artifact.source_path}",
                    file_name=artifact.file_name,
                )
            )
        except OSError as e:
            return Err(
                ChecksumError(
                    kind="io",
                    message=f"cannot read {artifact.file_name}: {e}",
                    file_name=artifact.file_name,
                )
            )
        entries.append(ChecksumEntry(file_name=artifact.file_name, digest=digest))

    try:
        atomic_write_text(manifest_path, format_checksum_file(entries))
    except OSError as e:
        return Err(ChecksumError(kind="io", message=f"cannot write {manifest_path}: {e}"))
    return Ok(tuple(entries))


def verify_checksums(
    manifest_path: Path,
    directory: Path,
    *,
    expected: Sequence[str] | None = None,
) -> Result[tuple[ChecksumEntry, ...], ChecksumError]:
    """Second pass: re-hash every file the manifest names and compare.

    Args:
        manifest_path: The checksum file written by the first pass.
        directory: Where the listed files live.
        expected: File names that must all be listed (artifacts of the run).

    Returns:
        Ok(verified entries, in manifest order), or the first problem found.
    """
    try:
        text = manifest_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return Err(ChecksumError(kind="missing", message=f"{manifest_path} not found"))
    except OSError as e:
        return Err(ChecksumError(kind="io", message=f"cannot read {manifest_path}: {e}"))

    parsed = parse_checksum_file(text)
    if isinstance(parsed, Err):
        return parsed

    if expected is not None:
        listed = {name for name, _ in parsed.value}
        unlisted = sorted(set(expected) - listed)
        if unlisted:
            return Err(
                ChecksumError(
                    kind="missing",
                    message=f"no checksum recorded for: {', '.join(unlisted)}",
                    file_name=unlisted[0],
                )
            )

    verified: list[ChecksumEntry] = []
    for name, recorded in parsed.value:
        path = directory / name
        try:
            actual = sha256_file(path)
        except FileNotFoundError:
            return Err(
                ChecksumError(
                    kind="missing",
                    message=f"{name}: listed in {manifest_path.name} but not found",
                    file_name=name,
                )
            )
        except OSError as e:
            return Err(
                ChecksumError(kind="io", message=f"cannot read {name}: {e}", file_name=name)
            )
        if actual != recorded:
            return Err(
                ChecksumError(
                    kind="mismatch",
                    message=(
                        f"{name}: checksum mismatch "
                        f"(expected {recorded[:12]}, got {actual[:12]})"
                    ),
                    file_name=name,
                )
            )
        verified.append(ChecksumEntry(file_name=name, digest=actual, verified=True))
    return Ok(tuple(verified))


class ChecksumVerifier:
    """Runs both passes over a staged artifact set."""

    def __init__(self, *, console: ConsoleProtocol) -> None:
        self._console = console

    def compute_and_verify(
        self,
        artifacts: Sequence[ArtifactRef],
        manifest_path: Path,
    ) -> Result[tuple[ChecksumEntry, ...], ChecksumError]:
        computed = compute_checksums(artifacts, manifest_path)
        if isinstance(computed, Err):
            return computed
        self._console.print(f"wrote {manifest_path.name} ({len(computed.value)} entries)")

        verified = verify_checksums(
            manifest_path,
            manifest_path.parent,
            expected=[a.file_name for a in artifacts],
        )
        if isinstance(verified, Err):
            return verified

        if len(verified.value) != len(computed.value):
            known = {e.file_name for e in computed.value}
            extra = sorted(e.file_name for e in verified.value if e.file_name not in known)
            return Err(
                ChecksumError(
                    kind="mismatch",
                    message=f"{manifest_path.name} lists unexpected files: {', '.join(extra)}",
                )
            )

        # Same set on both sides, both sorted by name.
        for before, after in zip(computed.value, verified.value, strict=True):
            if before.file_name != after.file_name or before.digest != after.digest:
                return Err(
                    ChecksumError(
                        kind="mismatch",
                        message=f"{after.file_name}: manifest changed between passes",
                        file_name=after.file_name,
                    )
                )
        self._console.success(f"{len(verified.value)} checksum(s) verified")
        return verified
