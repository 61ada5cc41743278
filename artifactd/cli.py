"""CLI entrypoint for artifactd."""

import sys
from pathlib import Path

import click

from . import __version__
from .artifact.priority import MAX_PRIORITY, MIN_PRIORITY
from .artifact.types import ArtifactType, Medium


@click.group()
@click.version_option(__version__, prog_name="artifactd")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False, dir_okay=False, path_type=Path),
    default=None,
    help="Path to a TOML config file (defaults to $ARTIFACTD_CONFIG)",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None) -> None:
    """artifactd - Keep a Falco work area in sync with declared artifacts.

    Rules files, plugins and config fragments are declared as YAML manifests
    and materialized as prioritized files the engine loads in name order.
    """
    from .logger import setup_logging
    from .settings import load_settings

    ctx.ensure_object(dict)
    try:
        settings = load_settings(config_path)
    except (FileNotFoundError, ValueError) as e:
        raise click.ClickException(str(e)) from e

    setup_logging(settings)
    ctx.obj["settings"] = settings


@cli.command()
@click.argument("name")
@click.option(
    "--priority",
    "-p",
    type=click.IntRange(MIN_PRIORITY, MAX_PRIORITY),
    default=0,
    show_default=True,
    help="Artifact priority",
)
@click.option(
    "--medium",
    "-m",
    type=click.Choice([m.value for m in Medium]),
    default=Medium.INLINE.value,
    show_default=True,
    help="Source medium (only rules files encode it)",
)
@click.option(
    "--type",
    "-t",
    "artifact_type",
    type=click.Choice([t.value for t in ArtifactType]),
    default=ArtifactType.RULESFILE.value,
    show_default=True,
    help="Artifact type",
)
@click.pass_context
def path(ctx: click.Context, name: str, priority: int, medium: str, artifact_type: str) -> None:
    """Print the path an artifact is materialized at.

    Examples:

        artifactd path baseline --priority 50 --medium inline

        artifactd path k8smeta --type plugin
    """
    from .commands.reconcile_cmd import run_path

    run_path(ctx.obj["settings"], name, priority, Medium(medium), ArtifactType(artifact_type))


@cli.command()
@click.argument(
    "manifest_dir",
    type=click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path),
)
@click.option(
    "--verbose",
    is_flag=True,
    help="Show every medium outcome, not only failures",
)
@click.pass_context
def reconcile(ctx: click.Context, manifest_dir: Path, verbose: bool) -> None:
    """Run one reconciliation pass over MANIFEST_DIR.

    Exits with status 1 if any resource failed to converge.
    """
    from .commands.reconcile_cmd import run_reconcile

    exit_code = run_reconcile(ctx.obj["settings"], manifest_dir, verbose=verbose)
    sys.exit(exit_code)


@cli.command()
@click.argument(
    "manifest_dir",
    type=click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path),
)
@click.pass_context
def watch(ctx: click.Context, manifest_dir: Path) -> None:
    """Reconcile MANIFEST_DIR continuously.

    Runs a pass at startup, after every manifest change, and every resync
    interval. Runs until interrupted (Ctrl+C).
    """
    from .commands.reconcile_cmd import run_watch

    run_watch(ctx.obj["settings"], manifest_dir)


def main() -> None:
    """Main entrypoint."""
    cli()


if __name__ == "__main__":
    main()
