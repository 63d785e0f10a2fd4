"""Voice model identifiers."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class TTSIdent:
    """
    Name of a loaded voice model.

    Equality is exact string comparison: no case folding, no stripping.
    ``"Amitaro"`` and ``"amitaro "`` name two different models.
    """
    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str):
            raise TypeError(f"identifier must be a str, got {type(self.value).__name__}")

    def __str__(self) -> str:
        return self.value

    @classmethod
    def of(cls, ident: "IdentLike") -> "TTSIdent":
        """Accept either a TTSIdent or a plain string."""
        if isinstance(ident, cls):
            return ident
        return cls(ident)


IdentLike = Union[TTSIdent, str]
