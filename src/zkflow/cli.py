"""Typer-based CLI to drive the proving pipeline."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .cli_utils import configure_logging, load_inputs, load_proof, write_output
from .config import DEFAULT_CONFIG, ServiceSettings
from .diagnostics import classify_duration, suggestions
from .exceptions import ConfigError, InputError
from .models import ExecutionMode, StageError, StageResult
from .pipeline import PipelineOrchestrator

app = typer.Typer(help="zkflow CLI - compile, prove and verify circuits against a proving backend")
console = Console()

CONFIG_OPTION = typer.Option(DEFAULT_CONFIG, "--config", help="Backend config file (relative to config/)")
TAG_OPTION = typer.Option("default", "--tag", help="Config entry tag to select")
DEMO_OPTION = typer.Option(False, "--demo", help="Force demo mode (synthetic results)")
VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Show debug logging")


def _build_orchestrator(config: str, tag: str, demo: bool) -> PipelineOrchestrator:
    try:
        settings = ServiceSettings.load(config, tag)
    except ConfigError as exc:
        console.print(f"[bold red]Config error:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=2)
    if demo:
        settings.demo_mode = True
    return PipelineOrchestrator.from_settings(settings)


def _print_error(error: StageError) -> None:
    console.print(f"[bold red]{error.kind}[/bold red] during [bold]{error.stage}[/bold]: {escape(error.message)}")
    console.print("Suggestions:")
    for hint in suggestions(error.kind, error.message):
        console.print(f"  - {escape(hint)}")


def _fail_input(exc: InputError) -> None:
    console.print(f"[bold red]{exc.kind}[/bold red]: {escape(str(exc))}")
    for hint in suggestions(exc.kind, str(exc)):
        console.print(f"  - {escape(hint)}")
    raise typer.Exit(code=1)


def _mode_label(execution_mode: str | None) -> str:
    if execution_mode == ExecutionMode.MOCK.value:
        return "[yellow]mock[/yellow]"
    return "[green]real[/green]"


def _finish(result: StageResult, output: Optional[Path]) -> None:
    if output:
        path = write_output(result.to_dict(), output)
        console.print(f"Result saved at: {escape(str(path))}")
    if not result.success:
        _print_error(result.error)
        raise typer.Exit(code=1)


@app.command()
def prove(
    circuit_file: Path = typer.Argument(..., exists=True, readable=True, help="Circuit source file"),
    public: Optional[str] = typer.Option(None, "--public", "-p", help="Public inputs as JSON or a .json/.yaml file"),
    private: Optional[str] = typer.Option(None, "--private", "-s", help="Private inputs as JSON or a .json/.yaml file"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the result envelope (JSON or YAML)"),
    config: str = CONFIG_OPTION,
    tag: str = TAG_OPTION,
    demo: bool = DEMO_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Compile, prove and verify a circuit in one run."""

    configure_logging(verbose)
    try:
        public_inputs = load_inputs(public, "public")
        private_inputs = load_inputs(private, "private")
    except InputError as exc:
        _fail_input(exc)

    orchestrator = _build_orchestrator(config, tag, demo)
    source = circuit_file.read_text(encoding="utf-8")
    result = asyncio.run(orchestrator.run_full(source, public_inputs, private_inputs))

    if result.success:
        meta = result.metadata
        run = result.value
        console.rule("Proof")
        console.print(f"Mode: [bold]{meta.get('mode')}[/bold] ({_mode_label(meta.get('executionMode'))} execution)")
        console.print(f"Valid: [bold]{run.verification.is_valid}[/bold]")
        console.print(f"Public outputs: {escape(json.dumps(run.proof.public_outputs, ensure_ascii=False))}")

        table = Table(title="Stages")
        table.add_column("Stage")
        table.add_column("Fingerprint")
        table.add_column("Duration")
        table.add_column("Speed")
        fingerprints = {
            "compile": meta["circuitFingerprint"],
            "generate": meta["publicInputsFingerprint"],
            "verify": meta["proofFingerprint"],
        }
        for stage, duration in meta["durationsMs"].items():
            formatted, category = classify_duration(duration)
            table.add_row(stage, fingerprints[stage], formatted, category)
        total, category = classify_duration(meta["totalDurationMs"])
        table.add_row("[bold]total[/bold]", "", total, category)
        console.print(table)
    _finish(result, output)


@app.command()
def compile(
    circuit_file: Path = typer.Argument(..., exists=True, readable=True, help="Circuit source file"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the compiled circuit envelope"),
    config: str = CONFIG_OPTION,
    tag: str = TAG_OPTION,
    demo: bool = DEMO_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Compile a circuit and show its fingerprint and mode."""

    configure_logging(verbose)
    orchestrator = _build_orchestrator(config, tag, demo)
    result = asyncio.run(orchestrator.compile(circuit_file.read_text(encoding="utf-8")))
    if result.success:
        formatted, _ = classify_duration(result.metadata["durationMs"])
        console.print(f"Compiled circuit [bold]{result.value.fingerprint}[/bold] "
                      f"({_mode_label(result.value.mode.value)}) in {formatted}")
    _finish(result, output)


@app.command()
def verify(
    proof_file: Path = typer.Argument(..., exists=True, readable=True, help="Proof file written by 'prove --output'"),
    config: str = CONFIG_OPTION,
    tag: str = TAG_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Verify a previously generated proof."""

    configure_logging(verbose)
    try:
        proof = load_proof(proof_file)
    except InputError as exc:
        _fail_input(exc)

    orchestrator = _build_orchestrator(config, tag, False)
    result = asyncio.run(orchestrator.verify(proof))
    if result.success:
        verdict = "[green]VALID[/green]" if result.value.is_valid else "[red]INVALID[/red]"
        console.print(f"Proof {result.value.fingerprint}: {verdict} ({_mode_label(result.metadata.get('mode'))})")
        if not result.value.is_valid:
            raise typer.Exit(code=1)
    _finish(result, None)


@app.command()
def status(
    init: bool = typer.Option(False, "--init", help="Initialize the backend before reporting"),
    config: str = CONFIG_OPTION,
    tag: str = TAG_OPTION,
    demo: bool = DEMO_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Print the service status snapshot as JSON."""

    configure_logging(verbose)
    orchestrator = _build_orchestrator(config, tag, demo)
    if init:
        asyncio.run(orchestrator.initializer.initialize())
    console.print_json(data=orchestrator.status().to_dict())


if __name__ == "__main__":
    app()
