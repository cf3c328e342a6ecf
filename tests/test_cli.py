import io
import json
from pathlib import Path

from rich.console import Console
from typer.testing import CliRunner

from news_digest import cli
from news_digest.cli import _format_digest, _read_queries, _to_plain, _write_output
from news_digest.errors import DownstreamFormatError
from news_digest.models import Intent, NewsResponse, PipelineResult, SummarizedItem


def _make_result() -> PipelineResult:
    intent = Intent(
        topic_original="chip tariffs", language="en", country="US", title="Chip tariffs"
    )
    item = SummarizedItem(
        title="Tariffs expand",
        link="https://news.example/1",
        published_at="Mon, 01 Jun 2026 10:00:00 GMT",
        source="Reuters",
        summary="Tariffs now cover more chips.",
    )
    response = NewsResponse(user_text="latest on chip tariffs", topic_data=intent, news=[item])
    return PipelineResult(response=response)


def test_to_plain_serializes_models_and_paths(tmp_path):
    payload = _to_plain({"result": _make_result(), "path": tmp_path / "out.json"})

    assert payload["result"]["response"]["topic_data"]["country"] == "US"
    assert payload["path"] == str(tmp_path / "out.json")
    json.dumps(payload)


def test_write_output_json(tmp_path):
    out_file = tmp_path / "nested" / "result.json"

    _write_output(out_file, _to_plain(_make_result().response))

    written = json.loads(out_file.read_text(encoding="utf-8"))
    assert written["news"][0]["source"] == "Reuters"
    assert written["header_image"] == ""


def test_format_digest_lists_summaries():
    text = _format_digest(_to_plain(_make_result().response))
    assert "Chip tariffs" in text
    assert "Tariffs now cover more chips." in text
    assert "https://news.example/1" in text


def test_format_digest_keeps_bracketed_text_literal():
    payload = _to_plain(_make_result().response)
    payload["topic_data"]["title"] = "[breaking] chips"
    payload["news"][0]["summary"] = "[update] chips rally"
    payload["news"].append(dict(payload["news"][0], summary="Rates [/] decline", source="[AP]"))
    buffer = io.StringIO()

    Console(file=buffer, width=200).print(_format_digest(payload))

    rendered = buffer.getvalue()
    assert "[breaking] chips" in rendered
    assert "[update] chips rally" in rendered
    assert "Rates [/] decline" in rendered
    assert "[AP]" in rendered


def test_read_queries_skips_blank_lines(tmp_path):
    path = tmp_path / "queries.txt"
    path.write_text("chips\n\n  ai regulation \n", encoding="utf-8")
    assert _read_queries(path) == ["chips", "ai regulation"]


def test_query_command_writes_json(monkeypatch, tmp_path):
    class FakePipeline:
        async def process_request(self, text, detected_language=None):
            assert text == "latest on chip tariffs"
            assert detected_language == "en"
            return _make_result()

    monkeypatch.setattr(cli, "NewsPipeline", FakePipeline)
    out_file = tmp_path / "digest.json"

    result = CliRunner().invoke(
        cli.app,
        ["query", "latest on chip tariffs", "--language", "en", "--out", str(out_file)],
    )

    assert result.exit_code == 0, result.output
    assert json.loads(out_file.read_text(encoding="utf-8"))["success"] is True


def test_batch_command_reports_failures(monkeypatch, tmp_path):
    class FlakyPipeline:
        async def process_request(self, text, detected_language=None):
            if text == "bad":
                raise RuntimeError("boom")
            return _make_result()

    monkeypatch.setattr(cli, "NewsPipeline", FlakyPipeline)
    queries = tmp_path / "queries.txt"
    queries.write_text("good\nbad\n", encoding="utf-8")
    outdir = tmp_path / "out"

    result = CliRunner().invoke(cli.app, ["batch", str(queries), "--outdir", str(outdir)])

    assert result.exit_code == 1
    assert (outdir / "000-digest.json").exists()
    assert not (outdir / "001-digest.json").exists()
    assert "1 succeeded, 1 failed" in result.output


def test_query_command_reports_pipeline_error(monkeypatch):
    class BrokenPipeline:
        async def process_request(self, text, detected_language=None):
            raise DownstreamFormatError("Intent reply was not valid JSON [line 1]")

    monkeypatch.setattr(cli, "NewsPipeline", BrokenPipeline)

    result = CliRunner().invoke(cli.app, ["query", "chips"])

    assert result.exit_code == 1
    assert "Failed 'chips'" in result.output
    assert "[line 1]" in result.output


def test_query_is_an_explicit_subcommand(monkeypatch):
    class UnusedPipeline:
        async def process_request(self, text, detected_language=None):
            raise AssertionError("pipeline should not run")

    monkeypatch.setattr(cli, "NewsPipeline", UnusedPipeline)

    assert CliRunner().invoke(cli.app, ["chips"]).exit_code != 0

    result = CliRunner().invoke(cli.app, ["--log-level", "debug", "query", "--help"])
    assert result.exit_code == 0
    assert "Free-text news query" in result.output
