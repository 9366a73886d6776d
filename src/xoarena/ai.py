"""Move selection for the XO Arena bot: tactical checks, mistakes and full minimax."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from .game import (
    MARKS,
    TIE,
    Cell,
    Mark,
    XOGame,
    available_cells,
    evaluate,
    other_mark,
)

logger = logging.getLogger(__name__)

DIFFICULTIES: Tuple[str, ...] = ("relaxed", "balanced", "perfect")

MISTAKE_PROBABILITIES: Mapping[str, float] = MappingProxyType(
    {
        "relaxed": 0.55,
        "balanced": 0.30,
        "perfect": 0.0,
    }
)


class InvalidConfiguration(ValueError):
    """Raised when the bot is asked to play with an unusable pair of marks."""


def mistake_probability(difficulty: str) -> float:
    try:
        return MISTAKE_PROBABILITIES[difficulty]
    except KeyError as exc:
        raise ValueError(
            f"Unsupported difficulty {difficulty!r}. "
            f"Choose one of {', '.join(DIFFICULTIES)}."
        ) from exc


def _check_marks(ai_mark: Mark, human_mark: Mark) -> None:
    if ai_mark not in MARKS or human_mark not in MARKS:
        raise InvalidConfiguration(
            f"invalid configuration: marks must be one of {', '.join(MARKS)}"
        )
    if ai_mark == human_mark:
        raise InvalidConfiguration(
            "invalid configuration: AI and human marks must differ"
        )


# ---- core search ----


def minimax_score(
    board: List[Cell],
    depth: int,
    maximizing: bool,
    ai_mark: Mark,
    human_mark: Mark,
) -> int:
    """Exhaustive depth-weighted minimax.

    Wins count ``10 - depth`` and losses ``depth - 10`` so faster wins and
    slower losses are preferred. The board is mutated and restored in place.
    """
    winner = evaluate(board).winner
    if winner == ai_mark:
        return 10 - depth
    if winner == human_mark:
        return depth - 10
    if winner == TIE:
        return 0

    current = ai_mark if maximizing else human_mark
    scores: List[int] = []
    for cell in available_cells(board):
        board[cell] = current
        scores.append(
            minimax_score(board, depth + 1, not maximizing, ai_mark, human_mark)
        )
        board[cell] = None

    return max(scores) if maximizing else min(scores)


def _first_winning_cell(
    board: List[Cell], moves: List[int], mark: Mark
) -> Optional[int]:
    for move in moves:
        board[move] = mark
        won = evaluate(board).winner == mark
        board[move] = None
        if won:
            return move
    return None


def select_move(
    board: Sequence[Cell],
    ai_mark: Mark,
    human_mark: Mark,
    difficulty: str,
    rng: Any = None,
) -> Optional[int]:
    """Pick the bot's next cell, or ``None`` when the board is full.

    Order of precedence: an immediate win, an immediate block, a random
    mistake drawn with the difficulty's probability, then the best minimax
    move. Win and block scans and the minimax loop all walk the empty cells
    in ascending order and keep the first match, so results are deterministic
    whenever no mistake is drawn.

    ``rng`` needs ``random()`` and ``choice()``; it defaults to the
    :mod:`random` module. The caller's board is left untouched.
    """
    _check_marks(ai_mark, human_mark)
    probability = mistake_probability(difficulty)
    if rng is None:
        rng = random

    work = list(board)
    available = available_cells(work)
    if not available:
        return None

    # Quick tactical checks for immediate wins or blocks
    move = _first_winning_cell(work, available, ai_mark)
    if move is not None:
        return move
    move = _first_winning_cell(work, available, human_mark)
    if move is not None:
        return move

    if rng.random() < probability:
        move = rng.choice(available)
        logger.debug(
            "%s bot (%s) plays a deliberate mistake at %d", ai_mark, difficulty, move
        )
        return move

    best_score = float("-inf")
    chosen = available[0]
    for move in available:
        work[move] = ai_mark
        score = minimax_score(work, 0, False, ai_mark, human_mark)
        work[move] = None
        if score > best_score:
            best_score, chosen = score, move
    return chosen


# ---- player object ----


@dataclass
class MoveSelector:
    """Bot player bound to a mark and a difficulty tier.

    - MoveSelector(player="O", difficulty="balanced")
    - choose(game) -> cell index or None
    """

    player: Mark
    difficulty: str = "balanced"
    rng: Any = field(default=None, repr=False)

    def __post_init__(self) -> None:
        _check_marks(self.player, self.opponent)
        mistake_probability(self.difficulty)

    @property
    def opponent(self) -> Mark:
        return other_mark(self.player)

    def choose(self, game: XOGame) -> Optional[int]:
        if game.finished:
            return None
        if game.current_player != self.player:
            raise ValueError("It is not this AI player's turn")
        return select_move(
            game.board, self.player, self.opponent, self.difficulty, self.rng
        )
