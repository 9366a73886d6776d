"""FastAPI-powered web UI for playing XO Arena in the browser."""

from __future__ import annotations

import logging
import random
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from fastapi import BackgroundTasks, FastAPI, HTTPException
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .ai import DIFFICULTIES, MoveSelector
from .game import MARKS, TIE, Mark, ScoreTally, XOGame, other_mark

logger = logging.getLogger(__name__)


MODES: Tuple[str, ...] = ("bot", "friend")
AI_THINK_DELAY: Tuple[float, float] = (0.45, 0.9)


@dataclass
class GameSession:
    """One browser's running match: the current round, its settings and the tally."""

    game: XOGame
    mode: str
    difficulty: str
    human_mark: Mark
    ai: Optional[MoveSelector]
    starting_player: Mark = "X"
    scores: ScoreTally = field(default_factory=ScoreTally)
    move_log: List[Dict[str, int | str]] = field(default_factory=list)
    ai_pending: bool = False
    round_id: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


SESSIONS: Dict[str, GameSession] = {}
app = FastAPI(title="XO Arena", description="Tic-tac-toe played in the browser")


def _check_choice(value: str, allowed: Tuple[str, ...], what: str) -> str:
    if value not in allowed:
        raise ValueError(
            f"Unsupported {what} {value!r}. Choose one of {', '.join(allowed)}."
        )
    return value


class NewGameRequest(BaseModel):
    """Request payload for starting a new session."""

    model_config = ConfigDict(populate_by_name=True)

    mode: str = Field(default="bot", description="'bot' or 'friend'")
    difficulty: str = Field(
        default="balanced", description="Bot strength: relaxed, balanced or perfect"
    )
    human_mark: str = Field(default="X", alias="humanMark")

    @field_validator("mode")
    @classmethod
    def ensure_supported_mode(cls, value: str) -> str:
        return _check_choice(value, MODES, "mode")

    @field_validator("difficulty")
    @classmethod
    def ensure_supported_difficulty(cls, value: str) -> str:
        return _check_choice(value, DIFFICULTIES, "difficulty")

    @field_validator("human_mark")
    @classmethod
    def ensure_valid_mark(cls, value: str) -> str:
        return _check_choice(value, MARKS, "mark")


class SettingsRequest(BaseModel):
    """Partial update of a session's settings; omitted fields stay as they are."""

    model_config = ConfigDict(populate_by_name=True)

    mode: Optional[str] = None
    difficulty: Optional[str] = None
    human_mark: Optional[str] = Field(default=None, alias="humanMark")

    @field_validator("mode")
    @classmethod
    def ensure_supported_mode(cls, value: Optional[str]) -> Optional[str]:
        return value if value is None else _check_choice(value, MODES, "mode")

    @field_validator("difficulty")
    @classmethod
    def ensure_supported_difficulty(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        return _check_choice(value, DIFFICULTIES, "difficulty")

    @field_validator("human_mark")
    @classmethod
    def ensure_valid_mark(cls, value: Optional[str]) -> Optional[str]:
        return value if value is None else _check_choice(value, MARKS, "mark")


class MoveRequest(BaseModel):
    """Request payload for submitting a move on an existing session."""

    model_config = ConfigDict(populate_by_name=True)

    cell_index: int = Field(alias="cellIndex", ge=0, le=8)


class StarterRequest(BaseModel):
    player: str

    @field_validator("player")
    @classmethod
    def ensure_valid_mark(cls, value: str) -> str:
        return _check_choice(value, MARKS, "mark")


# ---- session bookkeeping ----


def _build_ai(mode: str, difficulty: str, human_mark: Mark) -> Optional[MoveSelector]:
    if mode != "bot":
        return None
    return MoveSelector(player=other_mark(human_mark), difficulty=difficulty)


def _create_session(
    mode: str, difficulty: str, human_mark: Mark
) -> Tuple[str, GameSession]:
    """Create a new session and register it for later access."""

    session = GameSession(
        game=XOGame(),
        mode=mode,
        difficulty=difficulty,
        human_mark=human_mark,
        ai=_build_ai(mode, difficulty, human_mark),
    )
    session_id = uuid.uuid4().hex
    SESSIONS[session_id] = session
    logger.info(
        "Created session %s (mode=%s, difficulty=%s, human=%s)",
        session_id,
        mode,
        difficulty,
        human_mark,
    )
    return session_id, session


def _get_session(game_id: str) -> GameSession:
    try:
        return SESSIONS[game_id]
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Game not found") from exc


def _start_round(session: GameSession, starter: Mark) -> None:
    """Discard the current board and begin a fresh round. Caller holds the lock."""

    session.starting_player = starter
    session.game = XOGame(current_player=starter)
    session.move_log.clear()
    session.ai_pending = False
    # Any bot decision still in flight belongs to the old round.
    session.round_id += 1


def _bot_to_move(session: GameSession) -> bool:
    game = session.game
    return (
        session.ai is not None
        and not game.finished
        and game.current_player == session.ai.player
    )


def _play(session: GameSession, cell_index: int) -> None:
    """Apply a move for whoever is on turn and settle the tally if the round ends."""

    game = session.game
    player = game.current_player
    outcome = game.play_move(cell_index)
    session.move_log.append({"player": player, "cellIndex": cell_index})
    if outcome.finished:
        session.scores.record(outcome.winner)
        logger.info("Round finished: %s", outcome.winner)


def _schedule_ai(
    game_id: str,
    session: GameSession,
    background_tasks: BackgroundTasks,
) -> None:
    """Flag the bot as thinking and queue its move. Caller holds the lock."""

    if not _bot_to_move(session):
        return
    session.ai_pending = True
    background_tasks.add_task(_run_ai_turn, game_id, session.round_id)


def _run_ai_turn(game_id: str, round_id: int) -> None:
    session = SESSIONS.get(game_id)
    if not session:
        return

    time.sleep(max(0.0, random.uniform(*AI_THINK_DELAY)))

    with session.lock:
        if session.round_id != round_id:
            logger.debug("Discarding stale bot decision for session %s", game_id)
            return
        try:
            if not _bot_to_move(session):
                return
            cell_index = session.ai.choose(session.game)
            if cell_index is None:
                return
            _play(session, cell_index)
            logger.debug(
                "Bot %s played cell %d in session %s",
                session.ai.player,
                cell_index,
                game_id,
            )
        finally:
            session.ai_pending = False


def _status_label(session: GameSession) -> str:
    game = session.game
    if game.winner == TIE:
        return "It's a tie! Play another round."
    if game.winner:
        return f"{game.winner} wins!"
    if session.ai is not None and game.current_player == session.ai.player:
        return "The bot is thinking..." if session.ai_pending else "Bot's turn"
    if session.mode == "friend":
        return (
            "Player 1 (X) to move"
            if game.current_player == "X"
            else "Player 2 (O) to move"
        )
    return f"{game.current_player} to move"


def _serialize_session(game_id: str, session: GameSession) -> Dict[str, object]:
    with session.lock:
        game = session.game
        state: Dict[str, object] = {
            "id": game_id,
            "mode": session.mode,
            "difficulty": session.difficulty,
            "humanMark": session.human_mark,
            "botMark": session.ai.player if session.ai else None,
            "board": [c if c in MARKS else "" for c in game.board],
            "currentPlayer": game.current_player,
            "startingPlayer": session.starting_player,
            "winner": game.winner,
            "line": list(game.line) if game.line else None,
            "availableCells": game.available_moves(),
            "scores": session.scores.as_dict(),
            "moveLog": list(session.move_log),
            "aiPending": session.ai_pending,
            "status": _status_label(session),
        }
        if session.move_log:
            state["lastMove"] = session.move_log[-1]
        return state


def _apply_player_move(
    game_id: str,
    session: GameSession,
    cell_index: int,
    background_tasks: BackgroundTasks,
) -> None:
    with session.lock:
        game = session.game
        if game.finished:
            raise HTTPException(status_code=400, detail="Round already finished")

        if session.ai_pending:
            raise HTTPException(status_code=400, detail="Bot is completing its move")

        if session.ai is not None and game.current_player == session.ai.player:
            raise HTTPException(status_code=400, detail="It is the bot's turn")

        try:
            _play(session, cell_index)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

        _schedule_ai(game_id, session, background_tasks)


# ---- routes ----


@app.post("/api/game")
def create_game(
    request: NewGameRequest, background_tasks: BackgroundTasks
) -> Dict[str, object]:
    game_id, session = _create_session(
        request.mode, request.difficulty, request.human_mark
    )
    with session.lock:
        _schedule_ai(game_id, session, background_tasks)
    return _serialize_session(game_id, session)


@app.get("/api/game/{game_id}")
def get_game(game_id: str) -> Dict[str, object]:
    session = _get_session(game_id)
    return _serialize_session(game_id, session)


@app.post("/api/game/{game_id}/move")
def make_move(
    game_id: str, request: MoveRequest, background_tasks: BackgroundTasks
) -> Dict[str, object]:
    session = _get_session(game_id)
    _apply_player_move(game_id, session, request.cell_index, background_tasks)
    return _serialize_session(game_id, session)


@app.post("/api/game/{game_id}/round")
def new_round(game_id: str, background_tasks: BackgroundTasks) -> Dict[str, object]:
    session = _get_session(game_id)
    with session.lock:
        _start_round(session, other_mark(session.starting_player))
        logger.info(
            "Session %s starts a new round with %s", game_id, session.starting_player
        )
        _schedule_ai(game_id, session, background_tasks)
    return _serialize_session(game_id, session)


@app.post("/api/game/{game_id}/restart")
def restart_round(
    game_id: str, background_tasks: BackgroundTasks
) -> Dict[str, object]:
    session = _get_session(game_id)
    with session.lock:
        _start_round(session, session.starting_player)
        logger.info(
            "Session %s replays the round with %s", game_id, session.starting_player
        )
        _schedule_ai(game_id, session, background_tasks)
    return _serialize_session(game_id, session)


@app.post("/api/game/{game_id}/starter")
def choose_starter(
    game_id: str, request: StarterRequest, background_tasks: BackgroundTasks
) -> Dict[str, object]:
    session = _get_session(game_id)
    with session.lock:
        _start_round(session, request.player)
        _schedule_ai(game_id, session, background_tasks)
    return _serialize_session(game_id, session)


@app.post("/api/game/{game_id}/settings")
def update_settings(
    game_id: str, request: SettingsRequest, background_tasks: BackgroundTasks
) -> Dict[str, object]:
    session = _get_session(game_id)
    with session.lock:
        if request.difficulty is not None:
            session.difficulty = request.difficulty
            if session.ai is not None:
                session.ai.difficulty = request.difficulty

        # Picking a mode or a mark always starts over, even when it is unchanged.
        restart = False
        if request.mode is not None:
            session.mode = request.mode
            restart = True
        if request.human_mark is not None:
            session.human_mark = request.human_mark
            restart = True

        if restart:
            session.ai = _build_ai(session.mode, session.difficulty, session.human_mark)
            _start_round(session, "X")
            _schedule_ai(game_id, session, background_tasks)
    return _serialize_session(game_id, session)


@app.post("/api/game/{game_id}/scores/reset")
def reset_scores(
    game_id: str, background_tasks: BackgroundTasks
) -> Dict[str, object]:
    session = _get_session(game_id)
    with session.lock:
        session.scores.reset()
        _start_round(session, "X")
        _schedule_ai(game_id, session, background_tasks)
    return _serialize_session(game_id, session)


@app.get("/", response_class=HTMLResponse)
def index() -> str:
    return HTML_PAGE


HTML_PAGE = """<!DOCTYPE html>
<html lang=\"en\">
  <head>
    <meta charset=\"utf-8\" />
    <meta name=\"viewport\" content=\"width=device-width, initial-scale=1\" />
    <title>XO Arena</title>
    <style>
      :root {
        color-scheme: dark;
        font-family: system-ui, -apple-system, BlinkMacSystemFont, \"Segoe UI\", sans-serif;
      }
      * {
        box-sizing: border-box;
      }
      body {
        margin: 0;
        min-height: 100vh;
        display: flex;
        justify-content: center;
        padding: 2rem 1rem 3rem;
        color: #fff;
        background: linear-gradient(135deg, #4f46e5, #9333ea 50%, #0f172a);
      }
      main {
        width: min(760px, 100%);
        display: grid;
        gap: 1.5rem;
      }
      h1 {
        margin: 0;
        text-align: center;
        letter-spacing: 0.08em;
      }
      .card {
        background: rgba(255, 255, 255, 0.1);
        border: 1px solid rgba(255, 255, 255, 0.15);
        border-radius: 24px;
        padding: 1.5rem;
      }
      .row {
        display: flex;
        flex-wrap: wrap;
        gap: 0.5rem;
        align-items: center;
        margin-bottom: 0.75rem;
      }
      .row span {
        min-width: 7rem;
        opacity: 0.75;
      }
      button {
        font: inherit;
        color: inherit;
        padding: 0.5rem 1rem;
        border-radius: 999px;
        border: 1px solid rgba(255, 255, 255, 0.25);
        background: rgba(255, 255, 255, 0.1);
        cursor: pointer;
      }
      button.active {
        background: #fff;
        color: #4f46e5;
      }
      button:disabled {
        cursor: default;
        opacity: 0.6;
      }
      .hidden {
        display: none;
      }
      #board {
        display: grid;
        grid-template-columns: repeat(3, 1fr);
        gap: 0.75rem;
        width: min(360px, 100%);
        margin: 1rem auto;
      }
      #board button {
        aspect-ratio: 1;
        border-radius: 24px;
        font-size: 3rem;
        font-weight: 800;
      }
      #board button.win {
        border: 2px solid #6ee7b7;
        color: #a7f3d0;
      }
      #status {
        text-align: center;
        font-size: 1.2rem;
      }
      #message {
        text-align: center;
        color: #fecaca;
        min-height: 1.2rem;
      }
      .scores {
        display: flex;
        justify-content: space-around;
        text-align: center;
      }
      .scores strong {
        display: block;
        font-size: 2rem;
      }
    </style>
  </head>
  <body>
    <main>
      <h1>XO ARENA</h1>
      <section class=\"card\">
        <div class=\"row\">
          <span>Mode</span>
          <button data-mode=\"friend\">Play a friend</button>
          <button data-mode=\"bot\">Challenge the bot</button>
        </div>
        <div class=\"row bot-only\">
          <span>I play as</span>
          <button data-mark=\"X\">X</button>
          <button data-mark=\"O\">O</button>
        </div>
        <div class=\"row bot-only\">
          <span>Difficulty</span>
          <button data-difficulty=\"relaxed\">Relaxed</button>
          <button data-difficulty=\"balanced\">Balanced</button>
          <button data-difficulty=\"perfect\">Perfect</button>
        </div>
        <div class=\"row friend-only\">
          <span>Who starts</span>
          <button data-starter=\"X\">X</button>
          <button data-starter=\"O\">O</button>
        </div>
        <div id=\"status\">Loading…</div>
        <div id=\"board\"></div>
        <div id=\"message\"></div>
        <div class=\"row\" style=\"justify-content: center\">
          <button id=\"restart-round\">Replay round</button>
          <button id=\"new-round\">New round</button>
          <button id=\"reset-scores\">Reset scores</button>
        </div>
      </section>
      <section class=\"card scores\">
        <div>X<strong id=\"score-X\">0</strong></div>
        <div>Ties<strong id=\"score-tie\">0</strong></div>
        <div>O<strong id=\"score-O\">0</strong></div>
      </section>
    </main>
    <script>
      const boardEl = document.getElementById('board');
      const statusEl = document.getElementById('status');
      const messageEl = document.getElementById('message');
      let gameId = null;
      let gameState = null;
      let pollHandle = null;

      for (let i = 0; i < 9; i += 1) {
        const cell = document.createElement('button');
        cell.dataset.index = String(i);
        cell.addEventListener('click', () => sendMove(i));
        boardEl.appendChild(cell);
      }

      async function request(path, body) {
        const options = body === undefined
          ? { method: path.startsWith('GET ') ? 'GET' : 'POST' }
          : {
              method: 'POST',
              headers: { 'Content-Type': 'application/json' },
              body: JSON.stringify(body),
            };
        const url = path.replace(/^GET /, '');
        const response = await fetch(url, options);
        const payload = await response.json().catch(() => ({}));
        if (!response.ok) {
          const detail = typeof payload.detail === 'string' ? payload.detail : 'Request failed';
          throw new Error(detail);
        }
        return payload;
      }

      function render() {
        if (!gameState) return;
        statusEl.textContent = gameState.status;
        const line = gameState.line || [];
        boardEl.querySelectorAll('button').forEach((cell, index) => {
          cell.textContent = gameState.board[index];
          cell.classList.toggle('win', line.includes(index));
          cell.disabled = !gameState.availableCells.includes(index) || gameState.aiPending;
        });
        for (const key of ['X', 'O', 'tie']) {
          document.getElementById(`score-${key}`).textContent = gameState.scores[key];
        }
        const isBot = gameState.mode === 'bot';
        document.querySelectorAll('.bot-only').forEach((el) => el.classList.toggle('hidden', !isBot));
        document.querySelectorAll('.friend-only').forEach((el) => el.classList.toggle('hidden', isBot));
        document.querySelectorAll('[data-mode]').forEach((el) => el.classList.toggle('active', el.dataset.mode === gameState.mode));
        document.querySelectorAll('[data-mark]').forEach((el) => el.classList.toggle('active', el.dataset.mark === gameState.humanMark));
        document.querySelectorAll('[data-difficulty]').forEach((el) => el.classList.toggle('active', el.dataset.difficulty === gameState.difficulty));
        document.querySelectorAll('[data-starter]').forEach((el) => el.classList.toggle('active', el.dataset.starter === gameState.startingPlayer));
      }

      function setState(data) {
        gameState = data;
        gameId = data.id;
        render();
        if (gameState.aiPending && pollHandle === null) {
          pollHandle = setTimeout(poll, 250);
        }
      }

      async function poll() {
        pollHandle = null;
        if (!gameId) return;
        try {
          setState(await request(`GET /api/game/${gameId}`));
        } catch (error) {
          console.error('Polling failed', error);
        }
      }

      async function run(action) {
        messageEl.textContent = '';
        try {
          setState(await action());
        } catch (error) {
          messageEl.textContent = error.message || 'Network error. Please try again.';
        }
      }

      function sendMove(cellIndex) {
        if (!gameId || !gameState || gameState.winner) return;
        run(() => request(`/api/game/${gameId}/move`, { cellIndex }));
      }

      document.querySelectorAll('[data-mode]').forEach((el) =>
        el.addEventListener('click', () => run(() => request(`/api/game/${gameId}/settings`, { mode: el.dataset.mode }))),
      );
      document.querySelectorAll('[data-mark]').forEach((el) =>
        el.addEventListener('click', () => run(() => request(`/api/game/${gameId}/settings`, { humanMark: el.dataset.mark }))),
      );
      document.querySelectorAll('[data-difficulty]').forEach((el) =>
        el.addEventListener('click', () => run(() => request(`/api/game/${gameId}/settings`, { difficulty: el.dataset.difficulty }))),
      );
      document.querySelectorAll('[data-starter]').forEach((el) =>
        el.addEventListener('click', () => run(() => request(`/api/game/${gameId}/starter`, { player: el.dataset.starter }))),
      );
      document.getElementById('restart-round').addEventListener('click', () =>
        run(() => request(`/api/game/${gameId}/restart`)),
      );
      document.getElementById('new-round').addEventListener('click', () =>
        run(() => request(`/api/game/${gameId}/round`)),
      );
      document.getElementById('reset-scores').addEventListener('click', () =>
        run(() => request(`/api/game/${gameId}/scores/reset`)),
      );

      run(() => request('/api/game', { mode: 'bot', difficulty: 'balanced', humanMark: 'X' }));
    </script>
  </body>
</html>
"""
