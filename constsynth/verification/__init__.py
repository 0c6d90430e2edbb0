from __future__ import annotations

from .errors import ErrorEntry, Errors
from .synthesizer import ConstantSynth

__all__ = [
    "ErrorEntry",
    "Errors",
    "ConstantSynth",
]
