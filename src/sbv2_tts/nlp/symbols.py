"""
Phoneme Inventory and Id Mapping.

Style-Bert-VITS2 graphs embed phonemes, tones and languages through three
lookup tables. The ids fed to the graph must match the tables it was
trained with, so the inventory below is fixed:

    SYMBOLS     = [PAD] + sorted(ZH ∪ JP ∪ EN phonemes) + punctuation
    tone id     = language tone offset + per-language tone
    language id = fixed per language

Only Japanese is produced by the analyzers this project ships against,
but the full table is needed for the ids to line up with the embedding
rows of a trained model.
"""
from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

from sbv2_tts.tts.errors import AnalysisError

PAD = "_"

PUNCTUATIONS = ["!", "?", "…", ",", ".", "'", "-"]
PUNCTUATION_SYMBOLS = PUNCTUATIONS + ["SP", "UNK"]

ZH_SYMBOLS = [
    "E", "En", "a", "ai", "an", "ang", "ao", "b", "c", "ch", "d", "e", "ei",
    "en", "eng", "er", "f", "g", "h", "i", "i0", "ia", "ian", "iang", "iao",
    "ie", "in", "ing", "iong", "ir", "iu", "j", "k", "l", "m", "n", "o",
    "ong", "ou", "p", "q", "r", "s", "sh", "t", "u", "ua", "uai", "uan",
    "uang", "ui", "un", "uo", "v", "van", "ve", "vn", "w", "x", "y", "z",
    "zh", "AA", "EE", "OO",
]
NUM_ZH_TONES = 6

JP_SYMBOLS = [
    "N", "a", "a:", "b", "by", "ch", "d", "dy", "e", "e:", "f", "g", "gy",
    "h", "hy", "i", "i:", "j", "k", "ky", "m", "my", "n", "ny", "o", "o:",
    "p", "py", "q", "r", "ry", "s", "sh", "t", "ts", "ty", "u", "u:", "w",
    "y", "z", "zy",
]
NUM_JP_TONES = 2

EN_SYMBOLS = [
    "aa", "ae", "ah", "ao", "aw", "ay", "b", "ch", "d", "dh", "eh", "er",
    "ey", "f", "g", "hh", "ih", "iy", "jh", "k", "l", "m", "n", "ng", "ow",
    "oy", "p", "r", "s", "sh", "t", "th", "uh", "uw", "V", "w", "y", "z",
    "zh",
]
NUM_EN_TONES = 4

NORMAL_SYMBOLS = sorted(set(ZH_SYMBOLS + JP_SYMBOLS + EN_SYMBOLS))
SYMBOLS = [PAD] + NORMAL_SYMBOLS + PUNCTUATION_SYMBOLS
SYMBOL_TO_ID: Dict[str, int] = {s: i for i, s in enumerate(SYMBOLS)}

NUM_TONES = NUM_ZH_TONES + NUM_JP_TONES + NUM_EN_TONES

LANGUAGE_ID_MAP = {"ZH": 0, "JP": 1, "EN": 2}
NUM_LANGUAGES = len(LANGUAGE_ID_MAP)

LANGUAGE_TONE_START_MAP = {
    "ZH": 0,
    "JP": NUM_ZH_TONES,
    "EN": NUM_ZH_TONES + NUM_JP_TONES,
}

LANGUAGE_NUM_TONES = {"ZH": NUM_ZH_TONES, "JP": NUM_JP_TONES, "EN": NUM_EN_TONES}


def cleaned_text_to_sequence(
    phones: Sequence[str],
    tones: Sequence[int],
    language: str = "JP",
) -> Tuple[List[int], List[int], List[int]]:
    """
    Map analyzer output onto graph ids.

    Args:
        phones: Phoneme symbols, including the leading/trailing PAD.
        tones: Per-phoneme tone, relative to ``language``.
        language: "JP", "EN" or "ZH".

    Returns:
        (phone_ids, tone_ids, lang_ids), all the length of ``phones``.

    Raises:
        AnalysisError: On an unknown language, symbol or tone.
    """
    if language not in LANGUAGE_ID_MAP:
        raise AnalysisError(f"unknown language {language!r}", {"language": language})

    phone_ids: List[int] = []
    for pos, symbol in enumerate(phones):
        try:
            phone_ids.append(SYMBOL_TO_ID[symbol])
        except KeyError:
            raise AnalysisError(
                f"unknown phoneme symbol {symbol!r}", {"symbol": symbol, "position": pos}
            ) from None

    tone_start = LANGUAGE_TONE_START_MAP[language]
    num_tones = LANGUAGE_NUM_TONES[language]
    tone_ids: List[int] = []
    for pos, tone in enumerate(tones):
        if not 0 <= int(tone) < num_tones:
            raise AnalysisError(
                f"tone {tone} out of range for {language}",
                {"tone": int(tone), "position": pos, "num_tones": num_tones},
            )
        tone_ids.append(int(tone) + tone_start)

    lang_ids = [LANGUAGE_ID_MAP[language]] * len(phone_ids)
    return phone_ids, tone_ids, lang_ids
