"""CLI entry point using Hydra.

Usage examples:
  psg --config-dir my_show --config-name config mode=run
  psg mode=outline document_file=notes.md target_duration_minutes=20
  psg mode=script outline_file=output/outline.md
  psg mode=parse outline_file=output/outline.md
"""

from __future__ import annotations

import signal
import sys
from pathlib import Path
from typing import Any

import hydra
from omegaconf import DictConfig, OmegaConf

from ._hydra_conf import CLI_ONLY_KEYS, register_configs
from .config import apply_azure_fallbacks
from .logging_config import RichCallbacks, console, create_progress, render_outline_table, setup_logging
from .models import ProjectConfig

register_configs()

# ---------------------------------------------------------------------------
# Hydra DictConfig → Pydantic ProjectConfig bridge
# ---------------------------------------------------------------------------


def _to_project_config(cfg: DictConfig) -> ProjectConfig:
    """Convert a Hydra *DictConfig* to a Pydantic ``ProjectConfig``.

    CLI-only keys (``mode``, ``verbose``, ``quiet``) are stripped before validation.
    Azure credential env-var fallbacks are applied afterwards.
    """
    container: dict[str, Any] = OmegaConf.to_container(cfg, resolve=True)  # type: ignore[assignment]
    for key in CLI_ONLY_KEYS:
        container.pop(key, None)
    config = ProjectConfig.model_validate(container)
    return apply_azure_fallbacks(config)


def _get_config_dir() -> Path:
    """Extract ``--config-dir`` from *sys.argv* (before Hydra consumes it).

    Falls back to the current working directory.
    """
    for i, arg in enumerate(sys.argv):
        if arg == "--config-dir" and i + 1 < len(sys.argv):
            return Path(sys.argv[i + 1])
        if arg.startswith("--config-dir="):
            return Path(arg.split("=", 1)[1])
    return Path.cwd()


def _install_sigint(pipeline: Any) -> None:
    """First Ctrl-C requests cooperative cancellation; a second one aborts."""
    def _handler(signum: int, frame: Any) -> None:
        if pipeline.cancelled:
            raise KeyboardInterrupt
        console.print("\n[yellow]Cancelling after the current request...[/]")
        pipeline.cancel()

    signal.signal(signal.SIGINT, _handler)


def _print_result(result: Any) -> None:
    from .models import RunStatus

    if result.success:
        console.print("\n[bold green]Script generated successfully![/]")
        if result.manifest:
            m = result.manifest
            console.print(f"  Script: {m.script_file}")
            console.print(f"  Words: {m.total_words} (~{m.estimated_minutes:g} min of {m.target_duration_minutes:g})")
            if m.residual_issue_count:
                console.print(f"  [yellow]Residual issues: {m.residual_issue_count}[/]")
        return

    if result.status == RunStatus.CANCELLED:
        console.print("\n[bold yellow]Generation cancelled.[/]")
        sys.exit(130)

    console.print("\n[bold red]Pipeline failed.[/]")
    for err in result.errors:
        console.print(f"  [red]{err}[/]")
    sys.exit(1)


# ---------------------------------------------------------------------------
# Mode handlers
# ---------------------------------------------------------------------------


def _run_mode(cfg: DictConfig) -> None:
    config = _to_project_config(cfg)
    config_dir = _get_config_dir()

    if not config.document_file and not config.outline_file:
        console.print("[red]document_file (or outline_file) is required for run mode[/]")
        sys.exit(1)

    from .pipeline import Pipeline

    with create_progress() as progress:
        callbacks = RichCallbacks(progress)
        pipeline = Pipeline(config, config_dir=config_dir, callbacks=callbacks)
        _install_sigint(pipeline)
        console.print("[bold]Starting full pipeline...[/]")
        result = pipeline.run()

    _print_result(result)


def _outline_mode(cfg: DictConfig) -> None:
    config = _to_project_config(cfg)
    config_dir = _get_config_dir()

    if not config.document_file:
        console.print("[red]document_file is required for outline mode[/]")
        sys.exit(1)

    from .pipeline import GenerationCancelled, Pipeline

    pipeline = Pipeline(config, config_dir=config_dir, callbacks=RichCallbacks())
    _install_sigint(pipeline)
    try:
        result = pipeline.run_outline_only()
    except GenerationCancelled:
        console.print("\n[bold yellow]Outline generation cancelled.[/]")
        sys.exit(130)

    console.print(render_outline_table(result.outline, config.words_per_minute))
    console.print(f"  Total: {result.outline.total_duration_minutes:g} min (target {config.target_duration_minutes:g})")
    console.print(f"  Saved to {pipeline.output_dir / 'outline.md'}")


def _script_mode(cfg: DictConfig) -> None:
    config = _to_project_config(cfg)
    config_dir = _get_config_dir()

    if not config.outline_file:
        console.print("[red]outline_file is required for script mode[/]")
        sys.exit(1)

    from .pipeline import Pipeline

    with create_progress() as progress:
        callbacks = RichCallbacks(progress)
        pipeline = Pipeline(config, config_dir=config_dir, callbacks=callbacks)
        _install_sigint(pipeline)
        result = pipeline.run()

    _print_result(result)


def _parse_mode(cfg: DictConfig) -> None:
    """Offline: parse an outline file and show sections with word targets."""
    from .tools.outline_parser import OutlineParseError, parse_outline

    outline_file = cfg.get("outline_file")
    if not outline_file:
        console.print("[red]outline_file is required for parse mode[/]")
        sys.exit(1)

    path = _get_config_dir() / outline_file
    if not path.exists():
        console.print(f"[red]Outline file not found: {path}[/]")
        sys.exit(1)

    try:
        outline = parse_outline(path.read_text(encoding="utf-8"))
    except OutlineParseError as e:
        console.print(f"[red]{e}[/]")
        sys.exit(1)

    wpm = int(cfg.get("words_per_minute", 160))
    target = float(cfg.get("target_duration_minutes", 0) or 0)
    console.print(render_outline_table(outline, wpm))
    console.print(f"  Total: {outline.total_duration_minutes:g} min")
    if target:
        deviation = outline.total_duration_minutes - target
        style = "green" if abs(deviation) < 0.5 else "yellow"
        console.print(f"  [{style}]Deviation from {target:g}-minute target: {deviation:+g} min[/]")


_MODE_DISPATCH: dict[str, Any] = {
    "run": _run_mode,
    "outline": _outline_mode,
    "script": _script_mode,
    "parse": _parse_mode,
}


# ---------------------------------------------------------------------------
# Hydra entry point
# ---------------------------------------------------------------------------


@hydra.main(config_path="conf", config_name="config", version_base=None)
def hydra_entry(cfg: DictConfig) -> None:
    """Hydra-managed CLI entry point."""
    setup_logging(verbose=cfg.get("verbose", False), quiet=cfg.get("quiet", False))

    mode = cfg.get("mode", "run")
    handler = _MODE_DISPATCH.get(mode)
    if handler is None:
        console.print(f"[red]Unknown mode: {mode!r}. Choose from: {', '.join(_MODE_DISPATCH)}[/]")
        sys.exit(1)

    handler(cfg)


def main() -> None:
    """Package entry point (``[project.scripts]`` target)."""
    hydra_entry()  # pylint: disable=no-value-for-parameter
