"""
Minimal Flask API that wires GameSession into a browser front-end.

Endpoints:
- GET  /api/themes                     -> available themes
- POST /api/sessions                   -> start a session {mode, theme}
- GET  /api/sessions/<id>              -> current state (poll for clock and machine moves)
- POST /api/sessions/<id>/words        -> submit a word {word, wait_for_machine?}
- POST /api/sessions/<id>/restart      -> rematch with the same mode (theme may be changed)
- POST /api/sessions/<id>/menu         -> leave the game; in-flight oracle results are discarded
- GET  /api/sessions/<id>/history      -> structured history
- GET  /api/sessions/<id>/metrics      -> per-session metrics

All sessions live on one asyncio loop running in a background thread; request handlers hand
coroutines to it and wait for the result.
"""
from __future__ import annotations

import asyncio
import logging
import threading
import time
import uuid
from typing import Dict, Optional

from flask import Flask, jsonify, request

from .config import SETTINGS
from .game import LOCAL_REASONS, ORACLE_REASONS, Transition
from .oracle import LLMOracle
from .session import GameSession, SessionConfig
from .state import Mode, Theme

log = logging.getLogger("web")

app = Flask(__name__)

SESSIONS: Dict[str, dict] = {}
sessions_lock = threading.Lock()
SESSION_TTL_S = 3600  # drop inactive sessions after an hour
REQUEST_TIMEOUT_S = (SETTINGS.oracle_timeout_s or 60.0) * 2 + SETTINGS.machine_think_delay_s + 10

_loop: Optional[asyncio.AbstractEventLoop] = None
_loop_lock = threading.Lock()


def _get_loop() -> asyncio.AbstractEventLoop:
    global _loop
    with _loop_lock:
        if _loop is None:
            loop = asyncio.new_event_loop()
            threading.Thread(target=loop.run_forever, name="sambung-kata-loop", daemon=True).start()
            _loop = loop
    return _loop


def _run(coro, timeout: float = REQUEST_TIMEOUT_S):
    return asyncio.run_coroutine_threadsafe(coro, _get_loop()).result(timeout)


def build_session() -> GameSession:
    return GameSession(LLMOracle(model=SETTINGS.model), SessionConfig())


def _cleanup_stale_sessions(max_age_s: int = SESSION_TTL_S) -> None:
    now = time.time()
    with sessions_lock:
        expired = [sid for sid, rec in SESSIONS.items() if now - rec.get("updated_at", now) > max_age_s]
        dropped = [SESSIONS.pop(sid) for sid in expired]
    for rec in dropped:
        try:
            _run(rec["session"].close())
        except Exception:
            log.exception("Failed to close expired session")


def _lookup(session_id: str) -> Optional[dict]:
    with sessions_lock:
        rec = SESSIONS.get(session_id)
        if rec is not None:
            rec["updated_at"] = time.time()
        return rec


def _serialize(session_id: str, session: GameSession, tr: Optional[Transition] = None) -> dict:
    rejection = tr.rejection if tr is not None else None
    committed = tr.committed if tr is not None else None
    return {
        "session_id": session_id,
        "state": session.state.to_dict(),
        "rejection": rejection.to_dict() if rejection else None,
        "committed": committed.to_dict() if committed else None,
    }


def _parse_mode_theme(data: dict, default_theme: Optional[Theme] = None) -> tuple[Mode, Theme]:
    mode = Mode.parse(data.get("mode", "versus_machine"))
    if mode == Mode.MENU:
        raise ValueError("mode must be local_two_player or versus_machine")
    theme = Theme.parse(data.get("theme")) if data.get("theme") is not None else (default_theme or Theme.ANY)
    return mode, theme


@app.route("/api/themes", methods=["GET"])
def list_themes():
    return jsonify([{"name": t.name.lower(), "label": t.value} for t in Theme])


@app.route("/api/sessions", methods=["POST"])
def create_session():
    _cleanup_stale_sessions()
    data = request.get_json(silent=True) or {}
    try:
        mode, theme = _parse_mode_theme(data)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    session = build_session()
    session_id = f"sk_{int(time.time())}_{uuid.uuid4().hex[:6]}"
    _run(session.start_game(mode, theme))
    with sessions_lock:
        SESSIONS[session_id] = {"session": session, "mode": mode, "created_at": time.time(), "updated_at": time.time()}
    log.info("Created session %s mode=%s theme=%s", session_id, mode.value, theme.value)
    return jsonify(_serialize(session_id, session)), 201


@app.route("/api/sessions/<session_id>", methods=["GET"])
def get_session(session_id: str):
    rec = _lookup(session_id)
    if not rec:
        return jsonify({"error": "not found"}), 404
    return jsonify(_serialize(session_id, rec["session"]))


@app.route("/api/sessions/<session_id>/words", methods=["POST"])
def submit_word(session_id: str):
    rec = _lookup(session_id)
    if not rec:
        return jsonify({"error": "not found"}), 404
    data = request.get_json(silent=True) or {}
    word = data.get("word")
    if word is None:
        return jsonify({"error": "word is required"}), 400
    session: GameSession = rec["session"]
    tr = _run(session.submit_move(str(word)))
    if tr.committed is not None and data.get("wait_for_machine", True):
        _run(session.settle())
    body = _serialize(session_id, session, tr)
    if tr.rejection is None:
        return jsonify(body)
    if tr.rejection.reason in LOCAL_REASONS or tr.rejection.reason in ORACLE_REASONS:
        return jsonify(body), 400
    return jsonify(body), 409


@app.route("/api/sessions/<session_id>/restart", methods=["POST"])
def restart_session(session_id: str):
    rec = _lookup(session_id)
    if not rec:
        return jsonify({"error": "not found"}), 404
    session: GameSession = rec["session"]
    data = request.get_json(silent=True) or {}
    data.setdefault("mode", rec["mode"].value)
    try:
        mode, theme = _parse_mode_theme(data, default_theme=session.state.theme)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    _run(session.start_game(mode, theme))
    rec["mode"] = mode
    return jsonify(_serialize(session_id, session))


@app.route("/api/sessions/<session_id>/menu", methods=["POST"])
def session_menu(session_id: str):
    rec = _lookup(session_id)
    if not rec:
        return jsonify({"error": "not found"}), 404
    session: GameSession = rec["session"]
    _run(session.return_to_menu())
    return jsonify(_serialize(session_id, session))


@app.route("/api/sessions/<session_id>/history", methods=["GET"])
def session_history(session_id: str):
    rec = _lookup(session_id)
    if not rec:
        return jsonify({"error": "not found"}), 404
    return jsonify(rec["session"].export_history())


@app.route("/api/sessions/<session_id>/metrics", methods=["GET"])
def session_metrics(session_id: str):
    rec = _lookup(session_id)
    if not rec:
        return jsonify({"error": "not found"}), 404
    return jsonify(rec["session"].metrics())


@app.after_request
def add_cors_headers(response):
    response.headers["Access-Control-Allow-Origin"] = request.headers.get("Origin", "*")
    response.headers["Access-Control-Allow-Credentials"] = "true"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization"
    response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
    # Prevent caching so the UI always sees the freshest clock and chain
    response.headers["Cache-Control"] = "no-store, max-age=0"
    return response


@app.route("/api/<path:path>", methods=["OPTIONS"])
def cors_preflight(path: str):
    resp = app.make_response(("", 204))
    resp.headers["Access-Control-Allow-Origin"] = request.headers.get("Origin", "*")
    resp.headers["Access-Control-Allow-Credentials"] = "true"
    resp.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization"
    resp.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
    return resp
