from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from .codegen import generate
from .config import GeneratorConfig
from .errors import GenerationError, ServiceNotFound
from .invariants import service_violations
from .loader import find_service_classes, load_definition
from .service_builder import build_service_spec, build_services

app = typer.Typer(no_args_is_help=True, add_completion=False)

console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _error(message: object) -> None:
    console.print(f"[bold red]error[/bold red]: {escape(str(message))}", soft_wrap=True)


def _check(module: str, source: Optional[Path], services: Optional[List[str]], strict: bool) -> int:
    """Report every violation in the definition; returns the count."""
    definition = load_definition(module, path=source)
    found = {node.name: node for node in find_service_classes(definition)}
    if not found:
        _error(f"no @api class found in {module}")
        return 1

    problems = 0
    for name in services or ():
        if name not in found:
            _error(ServiceNotFound(f"@api class {name!r} not found in module {module!r}"))
            problems += 1
    classes = [node for name, node in found.items() if not services or name in services]

    for node in classes:
        try:
            spec = build_service_spec(definition, node)
        except GenerationError as exc:
            _error(exc)
            problems += 1
            continue
        violations = service_violations(spec, strict=strict)
        for violation in violations:
            _error(violation)
        problems += len(violations)
        if not violations:
            console.print(f"[bold green]ok[/bold green] {spec.name}: {len(spec.methods)} route(s)")
    return problems


@app.command()
def main(
    module: str = typer.Argument(..., help="Importable name of the definition module"),
    service: Optional[List[str]] = typer.Option(
        None, "--service", "-s", help="Only generate these @api classes"
    ),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Output directory"),
    source: Optional[Path] = typer.Option(
        None, help="Read the definition from this file instead of locating the module"
    ),
    strict_paths: Optional[bool] = typer.Option(
        None, "--strict-paths/--positional-paths", help="Require placeholder names to match"
    ),
    server_only: bool = typer.Option(False, "--server-only", help="Skip the client module"),
    client_only: bool = typer.Option(False, "--client-only", help="Skip the server module"),
    check: bool = typer.Option(False, "--check", help="Validate only; write nothing"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Generate server and client bindings from an annotated service definition."""
    _configure_logging(verbose)
    if server_only and client_only:
        raise typer.BadParameter("--server-only and --client-only are mutually exclusive")

    config = GeneratorConfig.from_env(output_dir=out, strict_path_names=strict_paths)

    try:
        if check:
            problems = _check(module, source, service, config.strict_path_names)
            raise typer.Exit(code=1 if problems else 0)

        definition = load_definition(module, path=source)
        specs = build_services(definition, service, strict=config.strict_path_names)
        written = generate(specs, config, server=not client_only, client=not server_only)
    except GenerationError as exc:
        _error(exc)
        raise typer.Exit(code=1) from exc

    console.print(f"[bold green]apibind[/bold green]: {module}")
    for spec in specs:
        console.print(f"  {spec.name}: {len(spec.methods)} route(s)")
        for method in spec.methods:
            console.print(f"    {method.http_method:<6} {method.path_template:<35} -> {method.name}")
    for path in written:
        console.print(f"  wrote {escape(str(path))}", soft_wrap=True)
