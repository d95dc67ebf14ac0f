"""CLI commands for previewing checklist compositions from a catalog file."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, List, Optional

import typer
import yaml
from pydantic import ValidationError

from .catalog.cache import TaskCatalog
from .composition.payload import ChecklistDraft
from .composition.schema import ChecklistItem, CompositionMode
from .config import DEFAULT_CONFIG_NAME, EngineConfig, load_config
from .duration import normalize
from .editor import ChecklistEditor
from .errors import CompositionError, ConfigError
from .phases.classifier import NO_PHASING, classify, phasing_blocked

APP_HELP = "Maintenance checklist composition engine."

app = typer.Typer(help=APP_HELP)


def _configure_logging(config: EngineConfig, verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, config.logging.level)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _load_engine_config(config: str) -> EngineConfig:
    try:
        return load_config(Path(config))
    except ConfigError as error:
        typer.echo(str(error))
        raise typer.Exit(code=1) from error


def load_catalog(catalog_path: Path) -> TaskCatalog:
    """Load a YAML or JSON task list from disk."""
    if not catalog_path.exists():
        raise typer.BadParameter(f"Catalog file not found: {catalog_path}")

    try:
        with catalog_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or []
    except yaml.YAMLError as error:
        typer.echo(f"Failed to parse catalog: {error}")
        raise typer.Exit(code=1) from error

    if isinstance(data, dict):
        data = data.get("tasks") or []
    if not isinstance(data, list):
        typer.echo("Catalog must be a list of tasks or a mapping with a 'tasks' list.")
        raise typer.Exit(code=1)

    try:
        return TaskCatalog(data)
    except ValidationError as error:
        typer.echo(f"Invalid task definition: {error}")
        raise typer.Exit(code=1) from error


def _render_item(item: ChecklistItem) -> str:
    return f"{item.order + 1}. {item.title} ({item.estimated_minutes} min)"


def _render_draft(draft: ChecklistDraft) -> None:
    typer.echo(f"Mode: {draft.mode.value}")
    if draft.mode is CompositionMode.PHASED:
        for phase in draft.phases:
            minutes = draft.phase_minutes.get(phase.id, 0)
            typer.echo(f"{phase.name} [{phase.id}] - {minutes} min")
            for item in phase.items:
                typer.echo(f"  {_render_item(item)}")
    else:
        for item in draft.flat_items:
            typer.echo(f"- {_render_item(item)}")
    for notice in draft.notices:
        typer.echo(f"! {notice.message}")
    typer.echo(f"Total: {draft.estimated_total_minutes} min")


@app.command()
def preview(
    catalog: str = typer.Option(
        ...,
        "--catalog",
        "-t",
        help="YAML or JSON file listing the maintenance tasks.",
    ),
    select: List[int] = typer.Option(
        None,
        "--select",
        "-s",
        help="Task id to toggle, in order (repeatable).",
    ),
    mode: Optional[str] = typer.Option(
        None,
        "--mode",
        "-m",
        help="Composition mode: phased or flat (defaults to the configured mode).",
    ),
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help="Path to the engine configuration file.",
    ),
    as_json: bool = typer.Option(False, "--json", help="Print the finalized draft as JSON."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Toggle the selected tasks and print the resulting checklist."""
    engine_config = _load_engine_config(config)
    _configure_logging(engine_config, verbose)
    task_catalog = load_catalog(Path(catalog))

    if mode is not None and mode.strip().upper() not in CompositionMode.__members__:
        raise typer.BadParameter(f"Unknown mode: {mode}", param_hint="--mode")

    editor = ChecklistEditor(task_catalog, mode=mode, config=engine_config)
    notices = list(editor.notices)
    try:
        for task_id in select or []:
            editor.toggle_task(task_id)
            notices.extend(editor.notices)
        draft = editor.finalize()
    except CompositionError as error:
        typer.echo(f"Error: {error}")
        raise typer.Exit(code=1) from error

    seen_codes = {notice.code for notice in draft.notices}
    extra = tuple(notice for notice in notices if notice.code not in seen_codes)
    draft = draft.model_copy(update={"notices": extra + draft.notices})

    if as_json:
        typer.echo(json.dumps(draft.model_dump(mode="json"), indent=2))
        return
    _render_draft(draft)


@app.command("classify")
def classify_catalog(
    catalog: str = typer.Option(
        ...,
        "--catalog",
        "-t",
        help="YAML or JSON file listing the maintenance tasks.",
    ),
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help="Path to the engine configuration file.",
    ),
) -> None:
    """Print the canonical minutes and phase of every task in the catalog."""
    engine_config = _load_engine_config(config)
    _configure_logging(engine_config, False)
    task_catalog = load_catalog(Path(catalog))
    policy = engine_config.classifier
    fallback = engine_config.duration.fallback_minutes

    if phasing_blocked(task_catalog):
        typer.echo("Catalog contains mobile unit tasks; selecting them disables phasing.")

    for task in task_catalog:
        outcome: Any = classify(task, selection=[task], policy=policy)
        label = "no phasing" if outcome is NO_PHASING else outcome.name
        minutes = normalize(task, fallback_minutes=fallback)
        typer.echo(f"{task.id}: {task.title} -> {label} ({minutes} min)")


if __name__ == "__main__":
    app()
