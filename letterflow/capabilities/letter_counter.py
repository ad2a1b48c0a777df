"""Letter counting capability.

A deterministic, side-effect free function exposed as a tool. Faults
raised here are programming errors; the routing pipeline contains them.
"""

DEFAULT_LETTER = "e"


def count_letter(word: str, letter: str = DEFAULT_LETTER) -> str:
    """Count case-insensitive occurrences of ``letter`` in ``word``.

    Returns:
        The count as a decimal string, e.g. ``"2"`` for ``"splendiferous"``.
    """
    target = letter.casefold()
    return str(sum(1 for char in word if char.casefold() == target))


class LetterCounter:
    """Capability executor counting one fixed target letter."""

    def __init__(self, letter: str = DEFAULT_LETTER):
        if len(letter) != 1:
            raise ValueError(f"Target letter must be a single character, got {letter!r}")
        self.letter = letter

    def execute(self, argument: str) -> str:
        return count_letter(argument, self.letter)

    def __call__(self, argument: str) -> str:
        return self.execute(argument)

    def __repr__(self) -> str:
        return f"LetterCounter(letter={self.letter!r})"
