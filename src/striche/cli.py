from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from striche.config import GeneratorConfig, parse_service_map
from striche.model.canonical import MergeMode
from striche.model.errors import StricheError
from striche.orchestrator.pipeline import build_context_for_specs, run_generate
from striche.render.renderer import resolve_template_dir

DEBUG_ENV = "STRICHE_DEBUG"

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help="OpenAPI/Swagger -> Terraform generator for API gateways.",
)

console = Console()


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose or os.environ.get(DEBUG_ENV) else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _mode(separate: bool) -> MergeMode:
    return MergeMode.SEPARATE if separate else MergeMode.UNIFIED


@app.command()
def generate(
    spec: List[Path] = typer.Option(..., "--spec", "-s", help="OpenAPI/Swagger file (yaml|json). Repeatable."),
    out: Path = typer.Option(..., "--out", "-o", help="Output directory for generated Terraform"),
    templates: Optional[Path] = typer.Option(None, "--templates", "-t", help="Templates directory"),
    platform: str = typer.Option("aws", help="Target platform (selects <templates>/<platform> when present)"),
    service_map: Optional[str] = typer.Option(None, help="JSON map of service-name -> upstream URL"),
    upstream: Optional[str] = typer.Option(None, "--upstream", "-u", help="Global upstream URL for every service"),
    separate: bool = typer.Option(
        False, "--separate/--unified", help="One gateway per service, or a single unified gateway (default)"
    ),
    force: bool = typer.Option(False, "--force", "-f", help="Write into an existing output directory"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    _configure_logging(verbose)
    try:
        result = run_generate(
            spec,
            out,
            mode=_mode(separate),
            service_map=parse_service_map(service_map),
            cli_upstream=upstream,
            template_dir=resolve_template_dir(templates, platform=platform),
            force=force,
            config=GeneratorConfig.from_env(),
        )
    except StricheError as e:
        console.print(f"[bold red]error[/bold red]: {e}")
        raise typer.Exit(code=1)

    console.print(f"[bold green]striche[/bold green] generate ({result.mode}) -> {result.out_dir}")
    console.print(f"Services: {', '.join(result.services)}")
    console.print(f"Routes: {result.route_count}")
    for p in result.written:
        console.print(f"  wrote {p}")


@app.command()
def inspect(
    spec: List[Path] = typer.Option(..., "--spec", "-s", help="OpenAPI/Swagger file (yaml|json). Repeatable."),
    service_map: Optional[str] = typer.Option(None, help="JSON map of service-name -> upstream URL"),
    upstream: Optional[str] = typer.Option(None, "--upstream", "-u", help="Global upstream URL for every service"),
    separate: bool = typer.Option(False, "--separate/--unified", help="Merge strategy"),
    format: str = typer.Option("table", help="Output format: table|json"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    _configure_logging(verbose)
    fmt = format.lower().strip()
    if fmt not in ("table", "json"):
        raise typer.BadParameter("format must be one of: table, json")

    try:
        result = build_context_for_specs(
            spec,
            mode=_mode(separate),
            service_map=parse_service_map(service_map),
            cli_upstream=upstream,
            config=GeneratorConfig.from_env(),
        )
    except StricheError as e:
        console.print(f"[bold red]error[/bold red]: {e}")
        raise typer.Exit(code=1)

    ctx = result.context
    if fmt == "json":
        # plain print keeps the output machine-readable
        print(json.dumps(ctx, indent=2, sort_keys=True))
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("SERVICE", no_wrap=True)
    table.add_column("METHOD", no_wrap=True)
    table.add_column("PATH")
    table.add_column("UPSTREAM")
    table.add_column("PLUGINS")
    table.add_column("ID", no_wrap=True)

    for name, svc in ctx["services"].items():
        for r in svc["routes"]:
            table.add_row(
                name,
                ",".join(r["methods"]),
                r["path"],
                r.get("upstream") or svc["upstream"],
                ",".join(sorted(r["plugins"])),
                r["id"],
            )

    console.print(f"[bold]Mode:[/bold] {ctx['mode']}  [bold]Region:[/bold] {ctx['region']}")
    console.print(table)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
