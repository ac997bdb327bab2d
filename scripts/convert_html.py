#!/usr/bin/env python3
"""
HTML to PDF Conversion CLI

Converts HTML documents to PDF through wkhtmltopdf using the rendering context.

Commands:
    convert   - Convert a single HTML file to PDF
    presets   - List available conversion presets
    arguments - Print the wkhtmltopdf argument string for a set of presets

Examples:\n

    convert_html.py convert report.html                              # Default settings

    convert_html.py convert report.html -o out/report.pdf            # Explicit output path

    convert_html.py convert report.html -p page_a4_portrait -p margins_normal

    convert_html.py convert report.html --timeout 30 --verbose       # Show renderer output

    convert_html.py arguments -p quality_draft                       # Inspect arguments
"""

import os
from pathlib import Path
from typing import List, Optional

import typer
from dotenv import load_dotenv
from typing_extensions import Annotated

from htmlpress.contexts.rendering import HtmlToPdfConverter, convert_document
from htmlpress.contexts.settings import load_presets, load_settings
from htmlpress.exceptions import ConfigurationError, InvalidStateError

load_dotenv()
PROJECT_ROOT = Path(os.getenv("PROJECT_ROOT", Path.cwd()))


def display_path(path: Path) -> str:
    """Return path relative to PROJECT_ROOT for cleaner display."""
    try:
        return str(Path(path).resolve().relative_to(PROJECT_ROOT.resolve()))
    except ValueError:
        return str(path)


app = typer.Typer(
    help="Convert HTML documents to PDF with wkhtmltopdf",
    add_completion=False,
    invoke_without_command=True,
)


@app.callback()
def main(ctx: typer.Context):
    """Show help by default when no command is provided."""
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


@app.command("convert")
def convert_command(
    html_file: Annotated[
        Path,
        typer.Argument(help="HTML file to convert"),
    ],
    output: Annotated[
        Optional[Path],
        typer.Option(
            "--output",
            "-o",
            help="Output PDF path (default: RESULTS_PATH/YYYY-MM-DD/<name>.pdf)",
        ),
    ] = None,
    presets: Annotated[
        Optional[List[str]],
        typer.Option(
            "--preset",
            "-p",
            help="Preset to apply (repeatable, later presets override earlier ones)",
        ),
    ] = None,
    timeout: Annotated[
        Optional[float],
        typer.Option(
            "--timeout",
            "-t",
            help="Kill wkhtmltopdf after this many seconds",
            min=0,
        ),
    ] = None,
    executable: Annotated[
        Optional[Path],
        typer.Option(
            "--wkhtmltopdf",
            help="Path to the wkhtmltopdf binary (default: WKHTMLTOPDF_PATH or PATH lookup)",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Show renderer output (also disables wkhtmltopdf quiet mode)",
        ),
    ] = False,
):
    """
    Convert an HTML file to PDF.

    Examples:\n

        $ convert_html.py convert report.html                       # Convert with defaults

        $ convert_html.py convert report.html -p page_a4_landscape  # Apply a preset

        $ convert_html.py convert report.html --timeout 10          # Ten second limit
    """
    typer.secho(f"\nConverting: {display_path(html_file)}", fg=typer.colors.BLUE, bold=True)
    if presets:
        typer.echo(f"Presets: {', '.join(presets)}")
    typer.echo("")

    try:
        settings = load_settings(
            presets,
            overrides={
                "execution_timeout": timeout,
                "quiet": False if verbose else None,
            },
        )
        converter = (
            HtmlToPdfConverter(executable) if executable else HtmlToPdfConverter.from_env()
        )
        result = convert_document(
            html_file=html_file,
            output_file=output,
            settings=settings,
            converter=converter,
            verbose=verbose,
        )
    except (ConfigurationError, InvalidStateError) as e:
        typer.secho(f"Error: {e}\n", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    typer.echo("")
    if result.success:
        typer.secho("✓ Conversion succeeded", fg=typer.colors.GREEN, bold=True)
        typer.echo(f"  PDF: {display_path(result.pdf_path)}")
        if result.page_count is not None:
            typer.echo(f"  Pages: {result.page_count}")
        typer.echo(f"  Time: {result.elapsed_s:.2f}s")
    else:
        typer.secho("✗ Conversion failed", fg=typer.colors.RED, bold=True)
        for error in result.errors:
            typer.secho(f"  - {error}", fg=typer.colors.RED)
        if result.log_lines and not verbose:
            typer.echo(f"  Last renderer line: {result.log_lines[-1]}")

    if result.log_dir:
        typer.echo(f"  Log: {display_path(result.log_dir / 'render.log')}")
    typer.echo("")

    raise typer.Exit(code=0 if result.success else 1)


@app.command("presets")
def presets_command(
    category: Annotated[
        Optional[str],
        typer.Argument(help="Category to filter (e.g., 'page', 'quality')"),
    ] = None,
):
    """
    List available conversion presets.

    Examples:\n
        $ convert_html.py presets            # All categories and presets

        $ convert_html.py presets margins    # Only margin presets
    """
    try:
        available = load_presets()
    except ConfigurationError as e:
        typer.secho(f"Error: {e}\n", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    names = sorted(name for name in available if category is None or name.startswith(f"{category}_"))
    if not names:
        typer.secho(f"No presets found for category '{category}'", fg=typer.colors.YELLOW)
        raise typer.Exit(code=1)

    for name in names:
        overrides = ", ".join(f"{key}={value}" for key, value in available[name].items())
        typer.echo(f"  {typer.style(name, bold=True)}: {overrides}")


@app.command("arguments")
def arguments_command(
    presets: Annotated[
        Optional[List[str]],
        typer.Option("--preset", "-p", help="Preset to apply (repeatable)"),
    ] = None,
):
    """
    Print the wkhtmltopdf argument string the given presets produce.

    Examples:\n
        $ convert_html.py arguments                                  # Defaults

        $ convert_html.py arguments -p page_a4_portrait -p quality_draft
    """
    try:
        settings = load_settings(presets)
        typer.echo(f"{settings.to_arguments()} - -")
    except ConfigurationError as e:
        typer.secho(f"Error: {e}\n", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
