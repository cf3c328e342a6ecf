"""Command-line entry points for the news digest pipeline."""

import asyncio
import dataclasses
import json
from datetime import date, datetime
from pathlib import Path
from typing import Any, List, Optional

import typer
from pydantic import BaseModel
from rich import print as rprint
from rich.markup import escape

from .config import configure_logging, get_settings
from .pipeline import NewsPipeline

app = typer.Typer(help="Build a localized news digest for a free-text query.")


def _to_plain(value: Any) -> Any:
    """
    Convert pydantic models, dataclasses, Paths, and date-like objects into
    JSON-serializable primitives.
    """
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if dataclasses.is_dataclass(value):
        return _to_plain(dataclasses.asdict(value))
    if isinstance(value, dict):
        return {k: _to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_to_plain(item) for item in value]
    return value


def _write_output(out_path: Path, json_payload: Any) -> None:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(
        json.dumps(json_payload, ensure_ascii=False, indent=2),
        encoding="utf-8",
    )


def _format_digest(payload: dict) -> str:
    topic = payload["topic_data"]
    lines = [
        f"[bold]{escape(topic['title'])}[/bold] "
        f"({topic['language']}-{topic['country']}, "
        f"topic: {escape(topic['topic_original'])})",
    ]
    for item in payload["news"]:
        lines.append(f"- {escape(item['summary'])} [dim]{escape(item['source'])}[/dim]")
        if item.get("link"):
            lines.append(f"  {escape(item['link'])}")
    return "\n".join(lines)


def _read_queries(path: Path) -> List[str]:
    lines = path.read_text(encoding="utf-8").splitlines()
    return [line.strip() for line in lines if line.strip()]


async def _run_many(queries: List[str], language: Optional[str]) -> List[Any]:
    pipeline = NewsPipeline()
    return await asyncio.gather(
        *(pipeline.process_request(q, detected_language=language) for q in queries),
        return_exceptions=True,
    )


@app.callback()
def main_callback(
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Override LOG_LEVEL for this run."
    ),
):
    configure_logging(log_level)


@app.command("query")
def query_command(
    text: str = typer.Argument(..., help="Free-text news query."),
    language: Optional[str] = typer.Option(
        None,
        "--language",
        "-l",
        help="Optional ISO-2 language hint, as supplied by speech recognition.",
    ),
    out: Optional[Path] = typer.Option(
        None,
        "--out",
        "-o",
        help="Optional path to write the JSON response. Defaults to stdout.",
    ),
):
    """Run one query through analyze -> fetch -> summarize."""
    if not text.strip():
        raise typer.BadParameter("Provide a query text.")

    try:
        result = asyncio.run(
            NewsPipeline().process_request(text, detected_language=language)
        )
    except Exception as exc:
        rprint(f"[red]Failed {escape(repr(text))}: {escape(str(exc))}[/red]")
        raise typer.Exit(code=1)
    payload = _to_plain(result.response)

    if out:
        _write_output(out, payload)
        rprint(f"[cyan]Wrote output to {out}[/cyan]")
    else:
        rprint(_format_digest(payload))


@app.command("batch")
def batch_command(
    queries_file: Path = typer.Argument(..., help="Text file with one query per line."),
    outdir: Optional[Path] = typer.Option(
        None,
        "--outdir",
        "-o",
        help="Optional directory to write one JSON response per query.",
    ),
    language: Optional[str] = typer.Option(None, "--language", "-l"),
):
    """
    Run several queries concurrently; failures are reported per query.
    """
    queries = _read_queries(queries_file)
    if not queries:
        raise typer.BadParameter("No queries found in the file.")

    if outdir:
        outdir.mkdir(parents=True, exist_ok=True)

    outcomes = asyncio.run(_run_many(queries, language))
    failures = 0
    for idx, (query, outcome) in enumerate(zip(queries, outcomes)):
        if isinstance(outcome, BaseException):
            failures += 1
            rprint(f"[red]Failed {escape(repr(query))}: {escape(str(outcome))}[/red]")
            continue
        payload = _to_plain(outcome.response)
        if outdir:
            out_path = outdir / f"{idx:03d}-digest.json"
            _write_output(out_path, payload)
            rprint(f"[cyan]Wrote output to {out_path}[/cyan]")
        else:
            rprint(f"[cyan]--- {escape(query)} ---[/cyan]")
            rprint(_format_digest(payload))

    rprint(
        f"[cyan]Batch complete: {len(queries) - failures} succeeded, {failures} failed.[/cyan]"
    )
    if failures:
        raise typer.Exit(code=1)


@app.command("serve")
def serve_command(
    host: Optional[str] = typer.Option(None, "--host"),
    port: Optional[int] = typer.Option(None, "--port"),
    reload: bool = typer.Option(False, "--reload"),
):
    """Run the HTTP API under uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "news_digest.server:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


def main():
    app()


if __name__ == "__main__":
    main()
