"""Tests for the XO Arena move selector."""

import random

import pytest

from xoarena.ai import (
    MISTAKE_PROBABILITIES,
    InvalidConfiguration,
    MoveSelector,
    minimax_score,
    select_move,
)
from xoarena.game import XOGame, available_cells, evaluate, other_mark


def _board(text):
    return [None if c == "." else c for c in text]


class AlwaysMistake:
    """RNG stub that always draws a mistake and picks the last candidate."""

    def random(self):
        return 0.0

    def choice(self, seq):
        return seq[-1]


class NeverChoose:
    """RNG stub whose mistakes would blow up if they were ever taken."""

    def random(self):
        return 0.0

    def choice(self, seq):
        raise AssertionError("choice() must not be called")


def test_mistake_table():
    assert dict(MISTAKE_PROBABILITIES) == {
        "relaxed": 0.55,
        "balanced": 0.30,
        "perfect": 0.0,
    }
    with pytest.raises(TypeError):
        MISTAKE_PROBABILITIES["perfect"] = 0.5


def test_full_board_returns_none():
    assert select_move(_board("XOXXOOOXX"), "O", "X", "perfect") is None


def test_win_takes_priority_over_block():
    board = _board("XX.OO....")
    assert select_move(board, "O", "X", "perfect") == 5
    assert select_move(board, "X", "O", "perfect") == 2


def test_blocks_opponent_two_in_a_row():
    assert select_move(_board("XX..O...."), "O", "X", "perfect") == 2


def test_first_winning_cell_in_ascending_order():
    # Both 2 (top row) and 6 (left column) win for O.
    assert select_move(_board("OO.O....."), "O", "X", "perfect") == 2


def test_mistakes_never_override_forced_moves():
    rng = AlwaysMistake()
    assert select_move(_board("XX.OO...."), "O", "X", "relaxed", rng) == 5
    assert select_move(_board("XX..O...."), "O", "X", "relaxed", rng) == 2


def test_mistake_picks_random_empty_cell():
    assert select_move(_board("X........"), "O", "X", "relaxed", AlwaysMistake()) == 8


def test_perfect_never_draws_a_mistake():
    assert select_move(_board("X........"), "O", "X", "perfect", NeverChoose()) == 4


def test_single_empty_cell_is_returned_for_every_difficulty():
    board = _board("XOXXOOOX.")
    for difficulty in MISTAKE_PROBABILITIES:
        assert select_move(board, "X", "O", difficulty, AlwaysMistake()) == 8
        assert select_move(board, "X", "O", difficulty) == 8


def test_center_reply_to_corner_opening():
    # Against a corner opening every reply except the center loses.
    assert select_move(_board("X........"), "O", "X", "perfect") == 4


def test_caller_board_is_left_untouched():
    board = _board("X...O...X")
    snapshot = list(board)
    select_move(board, "O", "X", "perfect")
    assert board == snapshot


def test_accepts_tuple_board():
    assert select_move(tuple(_board("XX..O....")), "O", "X", "perfect") == 2


def test_identical_marks_are_rejected():
    with pytest.raises(InvalidConfiguration, match="must differ"):
        select_move(_board("........."), "X", "X", "perfect")


def test_unknown_mark_is_rejected():
    with pytest.raises(InvalidConfiguration):
        select_move(_board("........."), "Z", "X", "perfect")


def test_unknown_difficulty_is_rejected():
    with pytest.raises(ValueError):
        select_move(_board("........."), "O", "X", "impossible")


def test_minimax_terminal_scores_are_depth_weighted():
    assert minimax_score(_board("OOOXX...."), 2, True, "O", "X") == 8
    assert minimax_score(_board("XXXOO...."), 3, False, "O", "X") == -7
    assert minimax_score(_board("XOXXOOOXX"), 5, True, "O", "X") == 0


def test_minimax_prefers_faster_win():
    # O to move wins at once on cell 2; slower wins score lower.
    assert minimax_score(_board("OO.XX...."), 0, True, "O", "X") == 9


def test_move_selector_checks_turn():
    game = XOGame()
    ai = MoveSelector(player="O", difficulty="perfect")
    with pytest.raises(ValueError):
        ai.choose(game)

    game.play_move(0)
    assert ai.choose(game) == 4


def test_move_selector_rejects_bad_configuration():
    with pytest.raises(InvalidConfiguration):
        MoveSelector(player="Z")
    with pytest.raises(ValueError):
        MoveSelector(player="O", difficulty="impossible")


def _opponent_can_win(board, to_move, bot, memo):
    """True if some sequence of opponent replies beats the perfect bot."""
    key = (tuple(board), to_move)
    if key in memo:
        return memo[key]

    outcome = evaluate(board)
    if outcome.finished:
        result = outcome.winner == other_mark(bot)
    elif to_move == bot:
        move = select_move(board, bot, other_mark(bot), "perfect")
        child = list(board)
        child[move] = bot
        result = _opponent_can_win(child, other_mark(bot), bot, memo)
    else:
        result = False
        for cell in available_cells(board):
            child = list(board)
            child[cell] = to_move
            if _opponent_can_win(child, bot, bot, memo):
                result = True
                break

    memo[key] = result
    return result


@pytest.mark.parametrize("bot", ["X", "O"])
def test_perfect_bot_never_loses(bot):
    assert not _opponent_can_win([None] * 9, "X", bot, {})


def test_perfect_opening_is_first_cell():
    # Every opening draws under perfect play, so the first one is kept.
    assert select_move([None] * 9, "X", "O", "perfect") == 0


def _play_against_perfect(difficulty, rng, cache):
    """Bot plays O against a perfect X; returns the round's winner."""
    game = XOGame()
    bot = MoveSelector(player="O", difficulty=difficulty, rng=rng)
    while not game.finished:
        if game.current_player == "X":
            key = tuple(game.board)
            if key not in cache:
                cache[key] = select_move(game.board, "X", "O", "perfect")
            move = cache[key]
        else:
            move = bot.choose(game)
        game.play_move(move)
    return game.winner


def test_relaxed_loses_far_more_often_than_perfect():
    cache = {}
    rng = random.Random(2024)
    games = 40

    relaxed_losses = sum(
        _play_against_perfect("relaxed", rng, cache) == "X" for _ in range(games)
    )
    perfect_losses = sum(
        _play_against_perfect("perfect", rng, cache) == "X" for _ in range(games)
    )

    assert perfect_losses == 0
    assert relaxed_losses >= games // 5
