"""Core rules for XO Arena: board helpers, outcome detection and round state."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

Mark = str  # "X" or "O"
Cell = Optional[Mark]  # None means empty
Line = Tuple[int, int, int]

MARKS: Tuple[Mark, Mark] = ("X", "O")
TIE = "tie"

WINNING_LINES: Tuple[Line, ...] = (
    (0, 1, 2),
    (3, 4, 5),
    (6, 7, 8),
    (0, 3, 6),
    (1, 4, 7),
    (2, 5, 8),
    (0, 4, 8),
    (2, 4, 6),
)


# ---------- Board helpers ----------


def empty_board() -> List[Cell]:
    return [None] * 9


def other_mark(mark: Mark) -> Mark:
    return "O" if mark == "X" else "X"


def available_cells(board: Sequence[Cell]) -> List[int]:
    """Indices of empty cells in ascending order."""
    return [index for index, cell in enumerate(board) if cell is None]


def is_full(board: Sequence[Cell]) -> bool:
    return all(cell is not None for cell in board)


# ---------- Outcome ----------


@dataclass(frozen=True)
class Outcome:
    """Result of inspecting a board.

    ``winner`` is a mark, ``"tie"`` for a full board without a line, or
    ``None`` while the round is still open. ``line`` is only set on a win.
    """

    winner: Optional[str] = None
    line: Optional[Line] = None

    @property
    def finished(self) -> bool:
        return self.winner is not None


def evaluate(board: Sequence[Cell]) -> Outcome:
    """Report the first completed line in enumeration order, a tie, or nothing."""
    for a, b, c in WINNING_LINES:
        v = board[a]
        if v is not None and v == board[b] == board[c]:
            return Outcome(winner=v, line=(a, b, c))
    if is_full(board):
        return Outcome(winner=TIE)
    return Outcome()


# ---------- Round ----------


@dataclass
class XOGame:
    board: List[Cell] = field(default_factory=empty_board)
    current_player: Mark = "X"
    winner: Optional[str] = None  # mark or "tie"
    line: Optional[Line] = None

    def __post_init__(self) -> None:
        if len(self.board) != 9:
            raise ValueError("Board must have exactly 9 cells")
        if self.current_player not in MARKS:
            raise ValueError(f"Unknown mark {self.current_player!r}")

    @property
    def finished(self) -> bool:
        return self.winner is not None

    def available_moves(self) -> List[int]:
        if self.finished:
            return []
        return available_cells(self.board)

    def play_move(self, cell: int) -> Outcome:
        """Place the current player's mark, update the result and pass the turn."""
        if self.finished:
            raise ValueError("Round already finished")
        if not 0 <= cell < 9:
            raise ValueError(f"Cell index {cell} is out of range")
        if self.board[cell] is not None:
            raise ValueError("Cell already occupied")

        self.board[cell] = self.current_player
        outcome = evaluate(self.board)
        if outcome.finished:
            self.winner = outcome.winner
            self.line = outcome.line
        else:
            self.current_player = other_mark(self.current_player)
        return outcome


# ---------- Scores ----------


@dataclass
class ScoreTally:
    """Running in-memory tally of round results."""

    x: int = 0
    o: int = 0
    tie: int = 0

    def record(self, winner: str) -> None:
        if winner == "X":
            self.x += 1
        elif winner == "O":
            self.o += 1
        elif winner == TIE:
            self.tie += 1
        else:
            raise ValueError(f"Cannot record result {winner!r}")

    def reset(self) -> None:
        self.x = self.o = self.tie = 0

    def as_dict(self) -> Dict[str, int]:
        return {"X": self.x, "O": self.o, "tie": self.tie}
