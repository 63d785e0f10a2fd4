"""Tests for the sbv2-tts CLI with stub collaborators."""
from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from sbv2_tts import cli
from sbv2_tts.core.config import Settings


@pytest.fixture
def patched(holder, style_bytes):
    holder.load("amitaro", style_bytes, b"A")
    with patch("sbv2_tts.cli.load_settings", return_value=Settings(raw={})), \
            patch("sbv2_tts.cli.TTSModelHolder.from_settings", return_value=holder):
        yield holder


def _last_json(out: str) -> dict:
    lines = [line for line in out.splitlines() if line.startswith("{")]
    return json.loads(lines[-1])


def test_cli_lists_models(patched, capsys):
    code = cli.main(["--models", "--json"])
    assert code == 0
    assert _last_json(capsys.readouterr().out) == {"ok": True, "models": ["amitaro"]}


def test_cli_dry_run(patched, capsys):
    code = cli.main(["--text", "ab", "--dry-run", "--json"])
    assert code == 0

    out = capsys.readouterr().out
    assert "DRY_RUN_OK" in out
    item = _last_json(out)["items"][0]
    assert item["word2ph"] == [3, 2, 2, 2]
    assert item["phones"] == 9
    assert item["bert_shape"] == [4, 9]


def test_cli_synth_outputs_wav(patched, tmp_path, capsys):
    out_path = tmp_path / "out.wav"
    code = cli.main(["ab", "--model", "amitaro", "--style-id", "1", "--out", str(out_path), "--json"])

    assert code == 0
    data = out_path.read_bytes()
    assert data[:4] == b"RIFF"
    assert data[8:12] == b"WAVE"
    assert "CLI_OK" in capsys.readouterr().out


def test_cli_batch_file(patched, tmp_path):
    inputs = tmp_path / "inputs.txt"
    inputs.write_text("ab\n\nba\n", encoding="utf-8")
    out_dir = tmp_path / "out"

    assert cli.main(["--file", str(inputs), "--out", str(out_dir)]) == 0
    assert sorted(p.name for p in out_dir.iterdir()) == ["item_001.wav", "item_002.wav"]


def test_cli_unknown_model_reports_error(patched, tmp_path, capsys):
    code = cli.main(["ab", "--model", "ghost", "--out", str(tmp_path / "x.wav"), "--json"])

    assert code == 1
    payload = _last_json(capsys.readouterr().out)
    assert payload["ok"] is False
    assert payload["error"] == "MODEL_NOT_FOUND"


def test_cli_requires_text(patched):
    with pytest.raises(SystemExit):
        cli.main(["--dry-run"])
