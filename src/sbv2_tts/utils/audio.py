"""
Audio helpers for callers of the holder.

The holder returns the raw float32 sample bytes produced by the voice
model, with no container. These helpers turn those bytes into a numpy
waveform and into a PCM 16-bit mono WAV file for the CLI.

Dependencies:
    - numpy: sample buffers
    - soundfile: WAV encoding (libsndfile)
"""
from __future__ import annotations

import io
from typing import Dict, Tuple

import numpy as np
import soundfile as sf

from sbv2_tts.core.logging import debug, get_logger
from sbv2_tts.utils.timeit import timeit

_LOG = get_logger("sbv2-tts.audio")


def float32_from_bytes(raw: bytes) -> np.ndarray:
    """
    View raw synthesis output as a 1-D float32 waveform.

    Raises:
        ValueError: If the byte count is not a multiple of 4.
    """
    if len(raw) % 4:
        raise ValueError(f"raw audio length {len(raw)} is not a multiple of 4 bytes")
    return np.frombuffer(raw, dtype=np.float32).copy()


def wav_bytes_from_float32(waveform: np.ndarray, sample_rate: int) -> Tuple[bytes, Dict[str, float]]:
    """
    Encode a float32 waveform as PCM 16-bit mono WAV.

    Samples outside [-1, 1] are clipped by libsndfile on conversion.

    Returns:
        Tuple of (wav_bytes, timings) where timings has a 'wav_encode' entry.
    """
    with timeit("wav_encode") as t:
        wav = np.asarray(waveform, dtype=np.float32).reshape(-1)
        buf = io.BytesIO()
        sf.write(buf, wav, sample_rate, format="WAV", subtype="PCM_16")
        out = buf.getvalue()

    debug(_LOG, "wav_encoded", bytes=len(out), sr=sample_rate, seconds=round(t.seconds, 4))
    return out, {"wav_encode": t.seconds}


def wav_bytes_from_raw(raw: bytes, sample_rate: int) -> bytes:
    """Raw float32 synthesis bytes straight to a WAV file body."""
    wav_bytes, _ = wav_bytes_from_float32(float32_from_bytes(raw), sample_rate)
    return wav_bytes
