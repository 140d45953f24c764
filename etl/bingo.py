"""Bingo card scoring for the 5×5 species-bingo side game.

Positions are numbered 0–24 row by row; the centre square (12) is FREE and
always counts as claimed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Tuple

BOARD_SIZE = 5
FREE_POSITION = 12

_ROWS = tuple(tuple(range(r * BOARD_SIZE, (r + 1) * BOARD_SIZE)) for r in range(BOARD_SIZE))
_COLS = tuple(tuple(range(c, BOARD_SIZE * BOARD_SIZE, BOARD_SIZE)) for c in range(BOARD_SIZE))
_DIAGONALS = (
    tuple(i * (BOARD_SIZE + 1) for i in range(BOARD_SIZE)),
    tuple((i + 1) * (BOARD_SIZE - 1) for i in range(BOARD_SIZE)),
)

# 12 winning lines: rows, columns, then the two diagonals
LINES: Tuple[Tuple[int, ...], ...] = _ROWS + _COLS + _DIAGONALS


@dataclass(frozen=True)
class BingoScore:
    lines: int
    blackout: bool
    claimed: int  # excludes FREE


def compute_score(claimed_positions: Iterable[int]) -> BingoScore:
    """Completed lines, blackout flag and claimed-tile count for a card.

    Raises ``ValueError`` for positions outside the board.
    """
    claimed = set(claimed_positions)
    off_board = sorted(p for p in claimed if not 0 <= p < BOARD_SIZE * BOARD_SIZE)
    if off_board:
        raise ValueError(f"positions off the bingo board: {off_board}")

    marked = claimed | {FREE_POSITION}
    lines = sum(1 for line in LINES if all(p in marked for p in line))
    non_free = claimed - {FREE_POSITION}

    return BingoScore(
        lines=lines,
        blackout=len(non_free) == BOARD_SIZE * BOARD_SIZE - 1,
        claimed=len(non_free),
    )


__all__ = ["BingoScore", "FREE_POSITION", "LINES", "compute_score"]
