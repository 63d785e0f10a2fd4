"""
Default Text Normalizer.

Turns raw input into the form the linguistic analyzer and the character
tokenizer expect. The alignment step counts characters of the *normalized*
text, so the analyzer must see exactly the string returned here.

Normalization Steps:
    1. Unicode NFKC (full-width ASCII to half-width, compatibility forms)
    2. Fold punctuation onto the small set the phoneme inventory knows
       (``! ? … , . ' -``)
    3. Drop combining (han)dakuten left over from NFKC
    4. Drop characters that are neither Japanese script, Latin/digits nor
       known punctuation
    5. Collapse whitespace

Rule design is deliberately minimal; callers with their own normalizer can
pass it to TTSModelHolder instead.

Example:
    >>> normalize_text("こんにちは！　元気？")
    'こんにちは! 元気?'
"""
from __future__ import annotations

import re
import unicodedata

NORMALIZE_VERSION = "v1"

PUNCTUATIONS = ["!", "?", "…", ",", ".", "'", "-"]

_REPLACE_MAP = {
    "：": ",",
    "；": ",",
    "，": ",",
    "。": ".",
    "！": "!",
    "？": "?",
    "\n": ".",
    "．": ".",
    "…": "...",
    "···": "...",
    "・・・": "...",
    "·": ",",
    "・": ",",
    "、": ",",
    "$": ".",
    "“": "'",
    "”": "'",
    '"': "'",
    "‘": "'",
    "’": "'",
    "（": "'",
    "）": "'",
    "(": "'",
    ")": "'",
    "《": "'",
    "》": "'",
    "【": "'",
    "】": "'",
    "[": "'",
    "]": "'",
    "「": "'",
    "」": "'",
    "—": "-",
    "−": "-",
    "～": "-",
    "~": "-",
}

# Longest keys first so "・・・" wins over "・".
_REPLACE_RE = re.compile("|".join(re.escape(k) for k in sorted(_REPLACE_MAP, key=len, reverse=True)))

_DISALLOWED_RE = re.compile(
    r"[^぀-ゟ゠-ヿ一-鿿㐀-䶿々"
    r"A-Za-z0-9\s"
    + "".join(re.escape(p) for p in PUNCTUATIONS)
    + r"]+"
)

_WS_RE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Normalize ``text`` for analysis; see module docstring for the steps."""
    res = unicodedata.normalize("NFKC", text)
    res = _REPLACE_RE.sub(lambda m: _REPLACE_MAP[m.group(0)], res)
    res = res.replace("゙", "").replace("゚", "")
    res = _DISALLOWED_RE.sub("", res)
    res = _WS_RE.sub(" ", res).strip()
    return res


def preview(text: str, limit: int) -> str:
    """Shorten ``text`` for log lines."""
    if limit <= 0 or len(text) <= limit:
        return text
    return text[:limit] + "…"
