"""
Command-Line Interface for sbv2-tts.

Builds a TTSModelHolder from settings.yaml, loads the voice models listed
there and synthesizes text to WAV files without any server.

Usage Examples:
    # Single text synthesis with the first configured model
    sbv2-tts --text "こんにちは" --out hello.wav

    # Pick a model and a style
    sbv2-tts "こんにちは" --model amitaro --style-id 2 --style-weight 0.7

    # Batch processing from file (1 line = 1 item)
    sbv2-tts --file inputs.txt --out output_dir/

    # List loaded models
    sbv2-tts --models

    # Dry-run: show the alignment summary, no synthesis
    sbv2-tts --text "テスト" --dry-run --json

Environment Variables:
    SBV2_SETTINGS: Settings file (default config/settings.yaml)
    SBV2_DEVICE: Device override (cpu/cuda/dml)
    SBV2_MODELS_DIR: Directory relative model paths are resolved against
"""

from __future__ import annotations

import argparse
import json
import os
from pathlib import Path
from typing import List, Optional
from uuid import uuid4

from sbv2_tts.core.config import load_settings
from sbv2_tts.core.logging import configure_logging, fail, get_logger, info, set_request_id
from sbv2_tts.tts.errors import TTSError
from sbv2_tts.tts.holder import TTSModelHolder
from sbv2_tts.utils.audio import wav_bytes_from_raw


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="sbv2-tts CLI (Style-Bert-VITS2 synthesis)")

    parser.add_argument("text_pos", nargs="?", help="Text to synthesize (positional)")
    parser.add_argument("--text", help="Text to synthesize")
    parser.add_argument("--file", help="Batch input file (1 line = 1 item)")
    parser.add_argument("--out", help="Output path (file or dir in batch mode)")
    parser.add_argument("--settings", help="Settings file (default: $SBV2_SETTINGS or config/settings.yaml)")
    parser.add_argument("--device", help="Device override (cpu/cuda/dml)")

    # Synthesis controls
    parser.add_argument("--model", help="Voice model identifier (default: first loaded)")
    parser.add_argument("--style-id", type=int, help="Row of the style table")
    parser.add_argument("--style-weight", type=float, help="Blend weight from neutral towards the style")
    parser.add_argument("--sdp-ratio", type=float, help="Stochastic duration predictor ratio (0-1)")
    parser.add_argument("--length-scale", type=float, help="Speech length scale (>1 is slower)")

    # Execution modes
    parser.add_argument("--models", action="store_true", help="List loaded voice models and exit")
    parser.add_argument("--dry-run", action="store_true", help="Align text and summarize without synth")
    parser.add_argument("--json", action="store_true", help="Print JSON summary")

    return parser.parse_args(argv)


def _load_texts(args: argparse.Namespace) -> List[str]:
    """
    Texts from --text, the positional argument or --file.

    Raises:
        SystemExit: If no input is given or the options conflict.
    """
    text = args.text or args.text_pos

    if args.file:
        if text:
            raise SystemExit("Use --file without --text or positional text.")
        lines = Path(args.file).read_text(encoding="utf-8").splitlines()
        items = [line.strip() for line in lines if line.strip()]
        if not items:
            raise SystemExit("Input file is empty.")
        return items

    if not text:
        raise SystemExit("Provide --text or a positional text.")
    return [text]


def _resolve_output_paths(args: argparse.Namespace, count: int) -> List[Path]:
    if args.file:
        out_dir = Path(args.out or "out")
        out_dir.mkdir(parents=True, exist_ok=True)
        return [out_dir / f"item_{i + 1:03d}.wav" for i in range(count)]

    out_path = Path(args.out or "out.wav")
    out_path.parent.mkdir(parents=True, exist_ok=True)
    return [out_path]


def _summary_for_text(holder: TTSModelHolder, text: str) -> dict:
    """Alignment summary of ``text``: what synthesis would be fed."""
    aligned = holder.align_text(text)
    return {
        "text_len": len(text),
        "normalized": aligned.text,
        "phones": len(aligned.phones),
        "word2ph": aligned.word2ph,
        "bert_shape": list(aligned.bert_ori.shape),
    }


def _print_payload(payload: dict, as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, ensure_ascii=False))
    else:
        print(payload)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Exit code (0 for success, 1 for a holder error).
    """
    args = _parse_args(argv)

    if args.device:
        os.environ["SBV2_DEVICE"] = args.device

    configure_logging()
    log = get_logger("sbv2-tts.cli")
    set_request_id(str(uuid4())[:12])

    settings = load_settings(args.settings or os.getenv("SBV2_SETTINGS") or "config/settings.yaml")

    try:
        holder = TTSModelHolder.from_settings(settings)

        if args.models:
            _print_payload({"ok": True, "models": holder.models()}, args.json)
            return 0

        texts = _load_texts(args)

        if args.dry_run:
            summaries = [_summary_for_text(holder, t) for t in texts]
            info(log, "dry_run", items=len(texts))
            _print_payload({"ok": True, "dry_run": True, "items": summaries}, args.json)
            print("DRY_RUN_OK")
            return 0

        loaded = holder.models()
        model = args.model or (loaded[0] if loaded else None)
        if model is None:
            raise SystemExit("No voice models loaded; add one under 'models' in the settings file.")

        out_paths = _resolve_output_paths(args, len(texts))
        results = []
        for text, out_path in zip(texts, out_paths):
            info(log, "synth_start", model=model, chars=len(text), out=str(out_path))
            raw = holder.synthesize_text(
                model,
                text,
                style_id=args.style_id,
                style_weight=args.style_weight,
                sdp_ratio=args.sdp_ratio,
                length_scale=args.length_scale,
            )
            wav = wav_bytes_from_raw(raw, settings.sample_rate)
            out_path.write_bytes(wav)
            results.append({
                "out": str(out_path),
                "model": model,
                "bytes": len(wav),
                "sample_rate": settings.sample_rate,
            })
    except TTSError as e:
        fail(log, "cli_failed", error=e.message, code=e.code)
        _print_payload(e.to_dict(), args.json)
        return 1

    _print_payload({"ok": True, "dry_run": False, "items": results}, args.json)
    print("CLI_OK")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
