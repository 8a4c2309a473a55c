"""CLI entry point using Typer."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer

if TYPE_CHECKING:
    from robotforge.models import ProgressEvent

app = typer.Typer(
    name="robotforge",
    help="Turn a photo into a rigged, animated 3D robot.",
    no_args_is_help=True,
)


def _echo_event(event: ProgressEvent) -> None:
    from robotforge.models import EventKind

    if event.kind is EventKind.PROGRESS:
        typer.echo(f"  {event.message}")
    elif event.kind is EventKind.STATS:
        p = event.payload
        typer.echo(
            f"  Stats: {p.get('name')} HP={p.get('hp')} ATK={p.get('atk')} DEF={p.get('def')}"
        )
    else:
        typer.echo(f"  Images: {event.payload.get('image_path')}")


@app.command()
def run(
    photo: Annotated[Path, typer.Argument(help="Input photo (PNG or JPEG)")],
    backend: Annotated[
        str | None,
        typer.Option("--backend", "-b", help="Backend: live or mock"),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Asset directory"),
    ] = None,
) -> None:
    """Generate a rigged, animated robot from a photo."""
    import asyncio

    from robotforge.config import PollSettings, load_config
    from robotforge.errors import PipelineError
    from robotforge.pipeline import CallbackSink, PipelineOrchestrator
    from robotforge.storage import FileAssetStore, get_repository, reset_repository

    try:
        image = photo.read_bytes()
    except OSError as e:
        typer.echo(f"Error: cannot read {photo}: {e}", err=True)
        raise typer.Exit(1) from None

    config = load_config()
    backend_name = backend or config.active_backend

    from robotforge.backend.gemini import GeminiBackend
    from robotforge.backend.meshy import MeshyBackend
    from robotforge.backend.mock import MockMeshBackend, MockTextBackend

    text_backend: GeminiBackend | MockTextBackend
    mesh_backend: MeshyBackend | MockMeshBackend
    poll = config.poll
    if backend_name == "mock":
        text_backend = MockTextBackend()
        mesh_backend = MockMeshBackend()
        # Mock jobs advance on every poll, so there is nothing to wait for.
        poll = PollSettings(
            mesh_interval=0, rigging_interval=0, animation_interval=0,
            max_attempts=config.poll.max_attempts,
        )
    else:
        try:
            config.require_credentials()
        except PipelineError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1) from None
        text_backend = GeminiBackend(config.gemini)
        mesh_backend = MeshyBackend(config.meshy)

    try:
        repository = get_repository(config.db_path)
    except PipelineError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None

    orchestrator = PipelineOrchestrator(
        text_backend,
        mesh_backend,
        FileAssetStore(output or config.assets_dir),
        repository,
        sink=CallbackSink(_echo_event),
        poll=poll,
        animation=config.animation,
        enable_pbr=config.meshy.enable_pbr,
    )

    async def _run() -> None:
        try:
            await text_backend.connect()
            await mesh_backend.connect()
            typer.echo(f"Generating ({backend_name}): {photo}")
            record = await orchestrator.execute(image)
        finally:
            await mesh_backend.disconnect()
            await text_backend.disconnect()

        typer.echo(f"Robot: {record.name} ({record.id})")
        typer.echo(f"Idle model: {record.model_path}")
        typer.echo(f"Attack model: {record.attack_model_path}")
        typer.echo(f"Time: {record.generation_time_ms / 1000:.1f}s")

    try:
        asyncio.run(_run())
    except PipelineError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None
    finally:
        reset_repository()


@app.command(name="list")
def list_robots() -> None:
    """List every stored robot, oldest first."""
    from robotforge.config import load_config
    from robotforge.errors import StorageError
    from robotforge.storage import get_repository, reset_repository

    config = load_config()
    try:
        robots = get_repository(config.db_path).list_all()
    except StorageError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None
    finally:
        reset_repository()

    if not robots:
        typer.echo("No robots yet.")
        return
    for robot in robots:
        typer.echo(
            f"{robot.id}  {robot.name}  HP={robot.hp} ATK={robot.atk} DEF={robot.defense}"
        )


@app.command()
def check() -> None:
    """Check service credentials and connectivity."""
    import asyncio

    from robotforge.config import load_config
    from robotforge.errors import ConfigError

    config = load_config()
    if config.active_backend == "mock":
        typer.echo("Mock backend: always available")
        typer.echo("Status: ready")
        return

    try:
        config.gemini.require_api_key()
        typer.echo("Gemini: API key set")
    except ConfigError as e:
        typer.echo(f"Gemini: {e}")
        raise typer.Exit(1) from None

    async def _run() -> None:
        from robotforge.backend.meshy import MeshyBackend

        meshy = MeshyBackend(config.meshy)
        try:
            await meshy.connect()
        except ConfigError as e:
            typer.echo(f"Meshy: {e}")
            typer.echo("Status: offline")
            raise typer.Exit(1) from None
        try:
            available = await meshy.is_available()
        finally:
            await meshy.disconnect()
        if available:
            typer.echo(f"Meshy: connected ({config.meshy.base_url})")
            typer.echo("Status: ready")
        else:
            typer.echo("Meshy: unavailable (check MESHY_AI_API_KEY)")
            typer.echo("Status: offline")
            raise typer.Exit(1)

    asyncio.run(_run())


@app.callback(invoke_without_command=True)
def main(
    version: Annotated[
        bool, typer.Option("--version", "-v", help="Show version")
    ] = False,
    verbose: Annotated[
        bool, typer.Option("--verbose", help="Debug logging")
    ] = False,
) -> None:
    """RobotForge - turn a photo into a rigged, animated 3D robot."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if version:
        from robotforge import __version__

        typer.echo(f"robotforge {__version__}")
        raise typer.Exit()
