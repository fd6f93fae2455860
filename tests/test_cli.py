"""Tests for the restyle command-line interface."""

import pytest

from restyle.app import build_store
from restyle.cli.main import async_main, parse_args
from restyle.core.config import Settings
from restyle.models.design import DesignRecord


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    return tmp_path / "data"


@pytest.fixture
def saved_design(data_dir, jpeg_bytes) -> DesignRecord:
    record = DesignRecord(original_image=jpeg_bytes, style_name="现代风格", prompt="modern")
    store = build_store(Settings(_env_file=None))  # type: ignore[call-arg]
    store.create_processing(record)
    store.complete_with_result(record.id, b"generated")
    return record


def test_parse_generate_defaults():
    args = parse_args(["generate", "room.jpg"])

    assert args.command == "generate"
    assert args.style == "modern"
    assert args.prompt is None


def test_parse_rejects_unknown_style():
    with pytest.raises(SystemExit):
        parse_args(["generate", "room.jpg", "--style", "baroque"])


@pytest.mark.asyncio
async def test_styles(capsys):
    assert await async_main(["styles"]) == 0

    assert "现代风格" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_list_empty(data_dir, capsys):
    assert await async_main(["list"]) == 0

    assert "No saved designs" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_list_and_show(saved_design, tmp_path, capsys):
    assert await async_main(["list"]) == 0
    assert str(saved_design.id) in capsys.readouterr().out

    export_dir = tmp_path / "export"
    assert await async_main(["show", str(saved_design.id), "--output-dir", str(export_dir)]) == 0

    assert (export_dir / f"generated_{saved_design.id}.jpg").read_bytes() == b"generated"
    assert "Prompt: modern" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_delete(saved_design):
    assert await async_main(["delete", str(saved_design.id)]) == 0
    assert await async_main(["delete", str(saved_design.id)]) == 1


@pytest.mark.asyncio
async def test_missing_configuration(monkeypatch, capsys):
    monkeypatch.setenv("APP_ENV", "development")
    for name in ("COZE_API_TOKEN", "COZE_WORKFLOW_ID", "CLOUDINARY_API_SECRET"):
        monkeypatch.delenv(name, raising=False)

    assert await async_main(["list"]) == 1

    assert "Missing required environment variables" in capsys.readouterr().err
