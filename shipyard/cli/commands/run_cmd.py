"""Run command - the full release pipeline, and version resolution alone."""

from __future__ import annotations

import os
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path

import typer

from shipyard.cli.commands._helpers import exit_on_error, exit_with_code
from shipyard.cli.context import CLIContext, build_context
from shipyard.core.errors import ErrorCode
from shipyard.core.result import Err, Ok, Result
from shipyard.output.console import Style
from shipyard.output.errors import pipeline_exit_code, print_pipeline_failure
from shipyard.release.builder import CommandSigner, CommandToolchain, PlatformBuilder
from shipyard.release.errors import PublishError, VersionError
from shipyard.release.model import BuildTarget, ReleaseChannel, ResolvedVersion, TriggerContext
from shipyard.release.orchestrator import PipelineFailure, ReleaseOrchestrator, Stage
from shipyard.release.publishers import (
    NightlyAssets,
    NightlyPublisher,
    Publisher,
    ReleasePublisher,
)
from shipyard.release.secrets import (
    load_remote_credentials,
    load_repo_credentials,
    load_signing_credentials,
)
from shipyard.release.version import (
    ignored_channel_hint,
    read_declared_version,
    resolve_version,
    trigger_from_env,
)

_TRIGGER_KINDS = ("push", "manual", "scheduled")


def _trigger(
    *,
    trigger: str | None,
    ref: str | None,
    channel_hint: str | None,
    from_env: bool,
    env: Mapping[str, str],
) -> Result[TriggerContext, VersionError]:
    if from_env:
        if trigger is not None:
            return Err(
                VersionError(
                    kind="unknown_trigger",
                    message="--trigger and --from-env are mutually exclusive",
                )
            )
        return trigger_from_env(env)
    if trigger is None:
        return Err(
            VersionError(
                kind="unknown_trigger",
                message="no trigger given",
                hint="Pass --trigger push|manual|scheduled or --from-env",
            )
        )
    kind = trigger.strip().lower()
    if kind not in _TRIGGER_KINDS:
        return Err(
            VersionError(
                kind="unknown_trigger",
                message=f"unknown trigger: {trigger}",
                hint=f"Expected one of: {', '.join(_TRIGGER_KINDS)}",
            )
        )
    return Ok(TriggerContext(kind=kind, ref=ref, channel_hint=channel_hint))


def _notes(ctx: CLIContext, notes_file: Path | None) -> str:
    if notes_file is None:
        return ctx.config.release.notes
    try:
        return notes_file.read_text(encoding="utf-8")
    except OSError as e:
        ctx.console.error(f"cannot read notes file: {e}")
        exit_with_code(int(ErrorCode.USER_ERROR))


def _release_repo(ctx: CLIContext, env: Mapping[str, str]) -> Result[str, PublishError]:
    repo = ctx.config.release.repo or env.get("GITHUB_REPOSITORY")
    if not repo:
        return Err(
            PublishError(
                kind="precondition",
                message="release repository not configured",
                hint="Set [release] repo in shipyard.toml or GITHUB_REPOSITORY",
            )
        )
    return Ok(repo)


def publish_preflight(
    ctx: CLIContext, resolved: ResolvedVersion, env: Mapping[str, str]
) -> Result[None, PublishError]:
    """Fail before building when the channel cannot be published."""
    if resolved.channel is ReleaseChannel.NIGHTLY:
        remote = load_remote_credentials(env)
        return remote if isinstance(remote, Err) else Ok(None)
    repo = _release_repo(ctx, env)
    if isinstance(repo, Err):
        return repo
    creds = load_repo_credentials(env)
    return creds if isinstance(creds, Err) else Ok(None)


def build_orchestrator(
    ctx: CLIContext,
    *,
    declared_version: str,
    env: Mapping[str, str],
    notes: str,
    dry_run: bool,
) -> ReleaseOrchestrator:
    """Wire the production collaborators from config and environment."""
    config = ctx.config
    root = ctx.project_root
    platforms = config.platforms

    builder = PlatformBuilder(
        toolchain=CommandToolchain(
            project_root=root,
            product=config.product.name,
            commands={pc.platform: pc.package for pc in platforms},
        ),
        signer=CommandSigner(
            project_root=root,
            commands={pc.platform: pc.sign for pc in platforms if pc.sign},
        ),
        naming=config.naming,
        product=config.product.name,
        out_dir=ctx.build_dir,
        console=ctx.console,
        require_signing=frozenset(pc.platform for pc in platforms if pc.require_signing),
    )

    def nightly(_: ResolvedVersion) -> Result[Publisher, PublishError]:
        remote = load_remote_credentials(env)
        if isinstance(remote, Err):
            return remote
        assets = NightlyAssets(
            index=root / config.nightly.index,
            preview=root / config.nightly.preview,
            logo=root / config.nightly.logo,
        )
        return Ok(
            NightlyPublisher(
                remote=remote.value,
                assets=assets,
                console=ctx.console,
                project_root=root,
                rsync_args=config.nightly.rsync_args,
                dry_run=dry_run,
            )
        )

    def stable(resolved: ResolvedVersion) -> Result[Publisher, PublishError]:
        repo = _release_repo(ctx, env)
        if isinstance(repo, Err):
            return repo
        creds = load_repo_credentials(env)
        if isinstance(creds, Err):
            return creds
        return Ok(
            ReleasePublisher(
                repo=repo.value,
                credentials=creds.value,
                console=ctx.console,
                project_root=root,
                target_ref=resolved.source_ref,
                notes=notes,
                notes_policy=config.release.notes_policy,
                dry_run=dry_run,
            )
        )

    return ReleaseOrchestrator(
        declared_version=declared_version,
        targets=[BuildTarget(pc.platform, pc.architectures) for pc in platforms],
        builder=builder,
        credentials=load_signing_credentials(env),
        staging_dir=ctx.staging_dir,
        nightly_publisher=nightly,
        release_publisher=stable,
        console=ctx.console,
        stable_branch=config.branches.stable,
        nightly_ref=config.branches.nightly,
        build_timeout_seconds=float(config.build.timeout_seconds),
        preflight=lambda resolved: publish_preflight(ctx, resolved, env),
    )


def run(
    trigger: str | None = typer.Option(
        None, "--trigger", "-t", help="push, manual or scheduled"
    ),
    ref: str | None = typer.Option(None, "--ref", help="Pushed ref (e.g. refs/heads/master)"),
    channel_hint: str | None = typer.Option(
        None, "--channel-hint", help="Requested channel for manual runs"
    ),
    from_env: bool = typer.Option(
        False, "--from-env", help="Read the trigger from GitHub Actions variables"
    ),
    config_path: Path | None = typer.Option(None, "--config", "-c", help="Path to shipyard.toml"),
    notes_file: Path | None = typer.Option(
        None, "--notes-file", help="Release notes for the draft release"
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Build and verify, do not publish"),
) -> None:
    """Build, verify and publish a release."""
    ctx = build_context(config_path)
    env = dict(os.environ)

    trigger_ctx = exit_on_error(
        _trigger(
            trigger=trigger,
            ref=ref,
            channel_hint=channel_hint,
            from_env=from_env,
            env=env,
        ),
        ctx,
    )

    declared = read_declared_version(ctx.config.product, ctx.project_root)
    if isinstance(declared, Err):
        failure = PipelineFailure(stage=Stage.RESOLVING, cause=declared.error)
        print_pipeline_failure(failure, ctx.console)
        exit_with_code(pipeline_exit_code(failure))

    orchestrator = build_orchestrator(
        ctx,
        declared_version=declared.value,
        env=env,
        notes=_notes(ctx, notes_file),
        dry_run=dry_run,
    )
    result = orchestrator.run(trigger_ctx)
    if isinstance(result, Err):
        ctx.console.print("")
        print_pipeline_failure(result.error, ctx.console)
        exit_with_code(pipeline_exit_code(result.error))

    report = result.value
    receipt = report.receipt
    suffix = " (dry-run)" if receipt.dry_run else ""
    ctx.console.print("")
    ctx.console.success(
        f"{report.resolved.channel} {report.resolved.version}: "
        f"{len(receipt.files)} file(s) -> {receipt.destination}{suffix}"
    )


def resolve(
    trigger: str | None = typer.Option(
        None, "--trigger", "-t", help="push, manual or scheduled"
    ),
    ref: str | None = typer.Option(None, "--ref", help="Pushed ref (e.g. refs/heads/master)"),
    channel_hint: str | None = typer.Option(
        None, "--channel-hint", help="Requested channel for manual runs"
    ),
    from_env: bool = typer.Option(
        False, "--from-env", help="Read the trigger from GitHub Actions variables"
    ),
    config_path: Path | None = typer.Option(None, "--config", "-c", help="Path to shipyard.toml"),
    github_output: bool = typer.Option(
        False, "--github-output", help="Also append the values to $GITHUB_OUTPUT"
    ),
) -> None:
    """Print the version, channel and source ref a run would use."""
    ctx = build_context(config_path)
    env = dict(os.environ)

    trigger_ctx = exit_on_error(
        _trigger(
            trigger=trigger,
            ref=ref,
            channel_hint=channel_hint,
            from_env=from_env,
            env=env,
        ),
        ctx,
    )
    declared = exit_on_error(
        read_declared_version(ctx.config.product, ctx.project_root),
        ctx,
        ErrorCode.ENV_ERROR,
    )
    resolved = exit_on_error(
        resolve_version(
            trigger_ctx,
            declared,
            stable_branch=ctx.config.branches.stable,
            nightly_ref=ctx.config.branches.nightly,
            now=datetime.now(UTC),
        ),
        ctx,
    )
    ignored = ignored_channel_hint(trigger_ctx)
    if ignored is not None:
        ctx.console.warning(ignored)

    lines = [
        f"version={resolved.version}",
        f"channel={resolved.channel}",
        f"ref={resolved.source_ref}",
        f"tag={resolved.tag}",
    ]
    for line in lines:
        typer.echo(line)

    if github_output:
        target = env.get("GITHUB_OUTPUT")
        if not target:
            ctx.console.error("GITHUB_OUTPUT is not set")
            exit_with_code(int(ErrorCode.ENV_ERROR))
        try:
            with Path(target).open("a", encoding="utf-8") as f:
                f.writelines(f"{line}\n" for line in lines)
        except OSError as e:
            ctx.console.error(f"cannot write GITHUB_OUTPUT: {e}")
            exit_with_code(int(ErrorCode.IO_ERROR))
        ctx.console.print(f"wrote {len(lines)} output(s)", Style.DIM)
