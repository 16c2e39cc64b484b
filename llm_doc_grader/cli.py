import asyncio
import json
import logging
import os
from typing import Any, Dict, Optional

import typer

from . import api
from .archive import ResultArchive
from .config import GraderConfig, load_config
from .errors import GraderError

app = typer.Typer(help="Grade documents with the phased LLM intelligence protocol.")

_state: Dict[str, Any] = {"config_path": None}

PROVIDER_HELP = "Provider: openai, anthropic, perplexity, deepseek or google (default from config)."
MODE_HELP = "Protocol mode: quick or comprehensive (default from config)."


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    # Client libraries log every request at INFO
    for noisy in ("httpx", "openai", "anthropic", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def _config() -> GraderConfig:
    return load_config(_state["config_path"])


def _read_text(path: str) -> str:
    if not os.path.isfile(path):
        raise typer.BadParameter(f"File not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def _doc_id(path: str) -> str:
    return os.path.splitext(os.path.basename(path))[0]


def _emit(result: Any, as_json: bool) -> None:
    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    else:
        typer.echo(result.formatted_report)


def _fail(e: Exception) -> None:
    typer.echo(f"Error: {e}", err=True)
    raise typer.Exit(code=1)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log prompts and responses at DEBUG level."),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to a YAML config file."),
):
    """
    LLM document grader.
    """
    _setup_logging(verbose)
    _state["config_path"] = config


@app.command()
def evaluate(
    file_path: str = typer.Argument(..., help="Path to the .txt or .md document to evaluate."),
    provider: Optional[str] = typer.Option(None, "--provider", "-p", help=PROVIDER_HELP),
    mode: Optional[str] = typer.Option(None, "--mode", "-m", help=MODE_HELP),
    instructions: Optional[str] = typer.Option(None, "--instructions", "-i", help="Extra guidance for the evaluator."),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON."),
    archive: Optional[str] = typer.Option(None, "--archive", help="SQLite file to append the result to."),
):
    """
    Runs the phased evaluation on one document and prints the report.
    """
    text = _read_text(file_path)
    try:
        result = asyncio.run(
            api.evaluate_text(text, provider=provider, mode=mode, custom_instructions=instructions, config=_config())
        )
    except (GraderError, ValueError) as e:
        _fail(e)
    _emit(result, as_json)
    if archive:
        ResultArchive(archive).record_evaluation(result, doc_id=_doc_id(file_path))


@app.command()
def compare(
    file_a: str = typer.Argument(..., help="Path to document A."),
    file_b: str = typer.Argument(..., help="Path to document B."),
    provider: Optional[str] = typer.Option(None, "--provider", "-p", help=PROVIDER_HELP),
    mode: Optional[str] = typer.Option(None, "--mode", "-m", help=MODE_HELP),
    no_model: bool = typer.Option(False, "--no-model", help="Compare structural scores only; no provider calls."),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON."),
    archive: Optional[str] = typer.Option(None, "--archive", help="SQLite file to append the result to."),
):
    """
    Evaluates two documents and reports which one is stronger (ties go to A).
    """
    text_a = _read_text(file_a)
    text_b = _read_text(file_b)
    try:
        if no_model:
            result = api.structural_compare(text_a, text_b)
        else:
            result = asyncio.run(api.compare_texts(text_a, text_b, provider=provider, mode=mode, config=_config()))
    except (GraderError, ValueError) as e:
        _fail(e)
    _emit(result, as_json)
    if archive:
        ResultArchive(archive).record_comparison(result, doc_id_a=_doc_id(file_a), doc_id_b=_doc_id(file_b))


@app.command()
def rewrite(
    file_path: str = typer.Argument(..., help="Path to the document to rewrite."),
    provider: Optional[str] = typer.Option(None, "--provider", "-p", help=PROVIDER_HELP),
    mode: Optional[str] = typer.Option(None, "--mode", "-m", help=MODE_HELP),
    instructions: Optional[str] = typer.Option(None, "--instructions", "-i", help="Custom rewrite instructions."),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Write the rewritten text to this file."),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON."),
    archive: Optional[str] = typer.Option(None, "--archive", help="SQLite file to append the result to."),
):
    """
    Evaluates, rewrites, re-evaluates and explains the score change.
    """
    text = _read_text(file_path)
    try:
        result = asyncio.run(
            api.rewrite_text(text, provider=provider, mode=mode, custom_instructions=instructions, config=_config())
        )
    except (GraderError, ValueError) as e:
        _fail(e)
    _emit(result, as_json)
    if output:
        with open(output, "w", encoding="utf-8") as f:
            f.write(result.rewritten_text)
        typer.echo(f"Rewritten text saved to {output}", err=True)
    if archive:
        ResultArchive(archive).record_rewrite(result, doc_id=_doc_id(file_path))


@app.command()
def structural(
    file_path: str = typer.Argument(..., help="Path to the document to score."),
    file_b: Optional[str] = typer.Argument(None, help="Optional second document to compare against."),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON."),
):
    """
    Deterministic structural scoring. No provider is called.
    """
    text = _read_text(file_path)
    if file_b:
        _emit(api.structural_compare(text, _read_text(file_b)), as_json)
        return
    report = api.structural_evaluate(text)
    if as_json:
        typer.echo(json.dumps(report.to_dict(), indent=2))
        return
    typer.echo(f"Structural Score: {report.overall_score}/100 (variance {report.variance})")
    for name, value in report.markers.as_dict().items():
        typer.echo(f"  {name}: {value}/100")
    typer.echo(report.textual_analysis)


@app.command()
def summary(
    archive: str = typer.Argument(..., help="SQLite archive written with --archive."),
):
    """
    Displays archived evaluation scores aggregated per document and provider.
    """
    if not os.path.exists(archive):
        typer.echo(f"Error: Database file not found at {archive}.", err=True)
        raise typer.Exit(code=1)
    summary_df = ResultArchive(archive).summary()
    if summary_df.empty:
        typer.echo("No archived evaluations found.")
        return
    typer.echo("\n--- Evaluation Summary ---")
    typer.echo(summary_df.to_string(index=False))


if __name__ == "__main__":
    app()
