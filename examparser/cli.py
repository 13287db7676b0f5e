"""
CLI Interface
=============
Command-line interface for the .docx exam parser.

Usage:
    python -m examparser parse <docx_path> [options]
    python -m examparser batch <directory> [options]
    python -m examparser validate <json_path>
    python -m examparser info <docx_path>
    python -m examparser serve [options]
"""

from __future__ import annotations

import json
import os
import sys
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path

import click
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeRemainingColumn,
)
from rich.table import Table

from . import __version__
from .archive import list_entries, read_document_xml
from .engine import ParserConfig, ParserEngine
from .exceptions import ExamParseError
from .models import ExamData, ParseResult
from .run_extractor import extract_paragraphs
from .validator import ValidationEngine

console = Console()


@click.group()
@click.version_option(version=__version__, prog_name="exam-parser")
def cli():
    """DOCX Exam Parser: turns Word exam papers into structured exam data."""
    pass


@cli.command()
@click.argument("docx_path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--title", "-t",
    default=None,
    help="Exam title (defaults to the configured title)",
)
@click.option(
    "--time-limit",
    default=None,
    type=int,
    help="Time limit in minutes",
)
@click.option(
    "--output", "-o",
    default=None,
    type=click.Path(dir_okay=False),
    help="Write the JSON result to this file",
)
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Logging level",
)
@click.option(
    "--log-file",
    default=None,
    help="Path to log file",
)
@click.option(
    "--json-output",
    is_flag=True,
    default=False,
    help="Output only JSON result to stdout (for programmatic use)",
)
@click.option(
    "--strict",
    is_flag=True,
    default=False,
    help="Exit with status 2 when validation reports problems",
)
def parse(
    docx_path: str,
    title: str,
    time_limit: int,
    output: str,
    log_level: str,
    log_file: str,
    json_output: bool,
    strict: bool,
):
    """Parse a single .docx exam into structured questions."""

    if json_output:
        # Suppress console output for JSON mode
        log_level = "ERROR"

    config = ParserConfig(log_level=log_level, log_file=log_file)
    if title is not None:
        config.title = title
    if time_limit is not None:
        config.time_limit = time_limit

    if not json_output:
        console.print()
        console.print(
            Panel.fit(
                f"[bold cyan]DOCX Exam Parser v{__version__}[/]\n"
                f"[dim]Parsing: {os.path.basename(docx_path)}[/]",
                border_style="cyan",
            )
        )
        console.print()

    try:
        result = ParserEngine(config).parse_file(docx_path)
    except (ExamParseError, FileNotFoundError) as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(1)

    if output:
        _save_json(result, Path(output))

    if json_output:
        click.echo(result.model_dump_json(indent=2))
    else:
        _display_results(result)
        if output:
            console.print(f"[dim]Saved JSON output: {output}[/]")

    if strict and not result.validation.valid:
        sys.exit(2)


@cli.command()
@click.argument("directory", type=click.Path(exists=True, file_okay=False))
@click.option(
    "--output", "-o",
    default=None,
    type=click.Path(file_okay=False),
    help="Directory for <name>_parsed.json files",
)
@click.option("--log-level", default="WARNING", help="Logging level")
@click.option(
    "--parallel", "-j",
    default=1,
    type=int,
    help="Number of parallel parse workers (1 = sequential)",
)
def batch(directory: str, output: str, log_level: str, parallel: int):
    """Batch parse all .docx files in a directory."""

    docx_files = sorted(
        p for p in Path(directory).glob("*.docx")
        if not p.name.startswith("~$")
    )

    if not docx_files:
        console.print(f"[yellow]No .docx files found in: {directory}[/]")
        return

    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]Batch DOCX Parser[/]\n"
            f"[dim]Found {len(docx_files)} files in: {directory}[/]",
            border_style="cyan",
        )
    )
    console.print()

    output_dir = Path(output) if output else None
    if output_dir:
        output_dir.mkdir(parents=True, exist_ok=True)

    engine = ParserEngine(ParserConfig(log_level=log_level))
    results = []
    errors = []

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeRemainingColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("Processing files...", total=len(docx_files))

        with ThreadPoolExecutor(max_workers=max(1, parallel)) as pool:
            futures = {
                pool.submit(engine.parse_file, str(path)): path
                for path in docx_files
            }
            for future in as_completed(futures):
                path = futures[future]
                progress.update(task, description=f"Parsed: {path.name}")
                try:
                    result = future.result()
                except (ExamParseError, OSError) as e:
                    errors.append((path.name, str(e)))
                else:
                    results.append((path.name, result))
                    if output_dir:
                        _save_json(result, output_dir / f"{path.stem}_parsed.json")
                progress.advance(task)

    results.sort(key=lambda item: item[0])
    errors.sort(key=lambda item: item[0])
    _display_batch_summary(results, errors)


@cli.command()
@click.argument("json_path", type=click.Path(exists=True, dir_okay=False))
def validate(json_path: str):
    """Re-validate a previously generated parse result JSON."""

    with open(json_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    try:
        exam_data = data.get("exam", data) if isinstance(data, dict) else data
        exam = ExamData.model_validate(exam_data)
    except ValidationError as e:
        console.print(f"[red]Error:[/] {json_path} is not an exam result: {e}")
        sys.exit(1)

    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]Validation Report[/]\n"
            f"[dim]File: {json_path}[/]",
            border_style="cyan",
        )
    )

    report = ValidationEngine().validate(exam)
    _display_validation_table(report.model_dump())


@cli.command()
@click.argument("docx_path", type=click.Path(exists=True, dir_okay=False))
def info(docx_path: str):
    """Display .docx archive and formatting information."""

    with open(docx_path, "rb") as f:
        data = f.read()

    try:
        entries = list_entries(data)
        paragraphs = extract_paragraphs(read_document_xml(data))
    except ExamParseError as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(1)

    runs = [run for p in paragraphs for run in p.runs]

    console.print()
    table = Table(title="DOCX Information", border_style="cyan")
    table.add_column("Property", style="bold")
    table.add_column("Value")

    table.add_row("File", os.path.basename(docx_path))
    table.add_row("File Size", f"{len(data) / 1024:.1f} KB")
    table.add_row("Archive Entries", str(len(entries)))
    table.add_row("Paragraphs", str(len(paragraphs)))
    table.add_row("Runs", str(len(runs)))
    table.add_row("Highlighted Runs", str(sum(r.highlighted for r in runs)))
    table.add_row("Underlined Runs", str(sum(r.underlined for r in runs)))
    table.add_row("Bold Runs", str(sum(r.bold for r in runs)))

    console.print(table)
    console.print()


@cli.command()
@click.option("--host", default="0.0.0.0", help="Server host")
@click.option("--port", default=5000, type=int, help="Server port")
@click.option("--debug", is_flag=True, default=False, help="Debug mode")
def serve(host: str, port: int, debug: bool):
    """Start the HTTP microservice server."""
    from .server import run_server

    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]DOCX Exam Parser Microservice[/]\n"
            f"[dim]Starting on {host}:{port}[/]",
            border_style="cyan",
        )
    )
    console.print()

    run_server(host=host, port=port, debug=debug)


# ─── Helpers ──────────────────────────────────────────────────────────────────


def _save_json(result: ParseResult, filepath: Path):
    """Save ParseResult to JSON file."""
    filepath.parent.mkdir(parents=True, exist_ok=True)
    filepath.write_text(result.model_dump_json(indent=2), encoding="utf-8")


def _display_results(result: ParseResult):
    """Display parse results in formatted tables."""
    exam = result.exam

    table = Table(title="Exam Information", border_style="cyan")
    table.add_column("Property", style="bold")
    table.add_column("Value")
    table.add_row("Title", exam.title or "(not set)")
    table.add_row(
        "Time Limit",
        f"{exam.time_limit} min" if exam.time_limit else "(none)",
    )
    table.add_row("Source", result.document.source_name)
    table.add_row("Paragraphs", str(result.document.paragraph_count))
    table.add_row("File Hash", result.document.file_hash[:16] + "...")
    console.print(table)
    console.print()

    sections = Table(title="Sections", border_style="magenta")
    sections.add_column("Section", style="bold")
    sections.add_column("Points")
    sections.add_column("Questions", justify="right")
    sections.add_column("Answered", justify="right")
    for section in exam.sections:
        answered = sum(1 for q in section.questions if q.correct_answer)
        sections.add_row(
            section.name,
            section.points or "-",
            str(len(section.questions)),
            str(answered),
        )
    console.print(sections)
    console.print()

    _display_validation_table(result.validation.model_dump())

    doc = result.document
    console.print(
        f"[dim]Parser v{doc.parser_version} | "
        f"Questions: {len(exam.questions)} | "
        f"Answers: {len(exam.answers)} | "
        f"Timestamp: {doc.parse_timestamp}[/]"
    )
    console.print()


def _display_validation_table(validation: dict):
    """Display validation report as a rich table."""
    table = Table(title="Validation Report", border_style="green")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_column("Status", justify="center")

    def status_icon(count, threshold=0):
        if count <= threshold:
            return "[green]✓[/]"
        return "[red]✗[/]"

    total = validation.get("total_questions", 0)
    table.add_row(
        "Total Questions",
        str(total),
        "[green]✓[/]" if total > 0 else "[red]✗[/]",
    )
    table.add_row(
        "Multiple Choice / Writing",
        f"{validation.get('multiple_choice_count', 0)} / "
        f"{validation.get('writing_count', 0)}",
        "",
    )

    missing_ans = validation.get("questions_missing_answer", [])
    table.add_row(
        "Questions Missing Answer",
        str(len(missing_ans)),
        status_icon(len(missing_ans)),
    )

    dupes = validation.get("duplicate_question_numbers", [])
    table.add_row(
        "Duplicate Question Numbers",
        str(len(dupes)),
        status_icon(len(dupes)),
    )

    gaps = validation.get("missing_question_numbers", [])
    table.add_row(
        "Missing Question Numbers",
        str(len(gaps)),
        "[green]✓[/]" if not gaps else "[yellow]⚠[/]",
    )

    console.print(table)
    console.print()

    problems = validation.get("problems", [])
    if problems:
        problem_table = Table(title="Problems", border_style="yellow")
        problem_table.add_column("#", justify="right")
        problem_table.add_column("Problem")
        for i, problem in enumerate(problems, 1):
            problem_table.add_row(str(i), problem)
        console.print(problem_table)
        console.print()
    else:
        console.print("[green]Exam is valid.[/]")
        console.print()


def _display_batch_summary(results, errors):
    """Display batch processing summary."""
    console.print()

    table = Table(title="Batch Processing Summary", border_style="cyan")
    table.add_column("File", style="bold")
    table.add_column("Questions", justify="right")
    table.add_column("Answers", justify="right")
    table.add_column("Problems", justify="right")
    table.add_column("Status", justify="center")

    total_questions = 0
    total_problems = 0

    for name, result in results:
        q_count = len(result.exam.questions)
        problems = len(result.validation.problems)
        total_questions += q_count
        total_problems += problems

        status = "[green]✓[/]" if result.validation.valid else "[yellow]⚠[/]"
        table.add_row(
            name,
            str(q_count),
            str(len(result.exam.answers)),
            str(problems),
            status,
        )

    for name, error in errors:
        table.add_row(name, "-", "-", "-", "[red]✗ FAILED[/]")

    console.print(table)
    console.print()
    console.print(
        f"[bold]Total:[/] {total_questions} questions from "
        f"{len(results)} files, {total_problems} problems, "
        f"{len(errors)} failures"
    )
    for name, error in errors:
        console.print(f"[red]{name}:[/] {error}")
    console.print()


# ─── Entry point (for python -m examparser.cli) ───────────────────────────────


if __name__ == "__main__":
    cli()
