"""XO Arena package exposing game rules, bot move selection, and the web app."""

from .ai import MoveSelector, select_move
from .game import Outcome, XOGame, evaluate
from .ui import app

__all__ = ["MoveSelector", "Outcome", "XOGame", "app", "evaluate", "select_move"]
