from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import typer

from shipyard.core.config import Config, load_config_or_default
from shipyard.core.errors import ErrorCode
from shipyard.core.result import Err
from shipyard.output.console import ConsoleProtocol, RichConsole

DEFAULT_CONFIG_NAME = "shipyard.toml"


@dataclass(frozen=True, slots=True)
class CLIContext:
    project_root: Path
    config: Config
    console: ConsoleProtocol

    @property
    def build_dir(self) -> Path:
        return self.project_root / self.config.paths.build_dir

    @property
    def staging_dir(self) -> Path:
        return self.project_root / self.config.paths.staging_dir


def build_context(config_path: Path | None = None) -> CLIContext:
    """Load ``shipyard.toml`` (defaults when absent) next to the project root.

    An explicit ``--config`` must exist; its directory is the project root.
    """
    if config_path is None:
        project_root = Path.cwd()
        path = project_root / DEFAULT_CONFIG_NAME
    else:
        path = config_path.expanduser().resolve()
        if not path.is_file():
            typer.echo(f"error: config file not found: {path}", err=True)
            raise typer.Exit(code=int(ErrorCode.USER_ERROR))
        project_root = path.parent

    config_result = load_config_or_default(path)
    if isinstance(config_result, Err):
        typer.echo(f"error: {config_result.error.message}", err=True)
        raise typer.Exit(code=int(ErrorCode.ENV_ERROR))

    return CLIContext(
        project_root=project_root,
        config=config_result.value,
        console=RichConsole(),
    )
