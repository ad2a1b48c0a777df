"""Deterministic capabilities exposed as tools."""

from .letter_counter import DEFAULT_LETTER, LetterCounter, count_letter

__all__ = ["DEFAULT_LETTER", "LetterCounter", "count_letter"]
