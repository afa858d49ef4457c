"""
Terminal front-end: type words, watch the chain grow, race the clock.

Usage: sambung-kata --mode pve --theme hewan
Commands while playing: ":menu" leaves the current game and picks mode and theme again, ":q" quits.
"""
import argparse
import asyncio
import json
import logging
from typing import Awaitable, Callable, Optional

from .config import SETTINGS
from .game import Rejection
from .oracle import LLMOracle
from .session import GameSession, SessionConfig
from .state import Mode, PlayerId, SessionState, Theme

log = logging.getLogger("cli")

ReadLine = Callable[[str], Awaitable[Optional[str]]]

PLAYER_LABELS = {
    PlayerId.HUMAN_1: "Player 1",
    PlayerId.HUMAN_2: "Player 2",
    PlayerId.MACHINE: "AI",
}


def load_json_config(path: str) -> dict:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        log.error("Failed to read config %s: %s", path, e)
        return {}


def player_label(state: SessionState, player: PlayerId) -> str:
    if state.mode == Mode.VERSUS_MACHINE and player == PlayerId.HUMAN_1:
        return "Kamu"
    return PLAYER_LABELS[player]


def render_state(state: SessionState) -> str:
    chain = " → ".join(rec.word for rec in state.history) or "(belum ada kata)"
    lines = [
        f"Tema: {state.theme.value} | Streak: {state.streak} | Sisa waktu: {state.remaining_s}s",
        f"Rantai: {chain}",
    ]
    if state.required_letter:
        lines.append(f"Huruf berikutnya: {state.required_letter.upper()}")
    return "\n".join(lines)


def render_result(state: SessionState) -> str:
    if state.winner is None:
        return "Permainan selesai."
    if state.winner == PlayerId.MACHINE:
        headline = "AI Menang!"
    elif state.mode == Mode.VERSUS_MACHINE:
        headline = "Kamu Menang!"
    else:
        headline = f"{PLAYER_LABELS[state.winner]} Menang!"
    reasons = {
        "timeout": "Waktu habis.",
        "surrender": "AI menyerah.",
        "machine_invalid_word": "AI memberikan kata yang tidak sah.",
    }
    return f"{headline} {reasons.get(state.end_reason or '', '')} Total streak: {state.streak}".strip()


async def _read_stdin(prompt: str) -> Optional[str]:
    try:
        return await asyncio.to_thread(input, prompt)
    except EOFError:
        return None


async def play_game(session: GameSession, mode: Mode, theme: Theme, read_line: ReadLine = _read_stdin, out: Callable[[str], None] = print) -> Optional[str]:
    """Play one game to the end. Returns "quit", "menu" or None when the game finished normally."""
    def on_change(state: SessionState, rejection: Optional[Rejection]) -> None:
        if rejection is not None:
            out(f"✗ {rejection.message}")
        elif state.game_over and state.end_reason == "timeout":
            out("\n⏰ Waktu habis!")

    session.subscribe(on_change)
    try:
        await session.start_game(mode, theme)
        while True:
            await session.settle()
            state = session.state
            if state.game_over:
                break
            out(render_state(state))
            line = await read_line(f"{player_label(state, state.active_player)} > ")
            if line is None or line.strip() == ":q":
                return "quit"
            if line.strip() == ":menu":
                await session.return_to_menu()
                return "menu"
            if session.state.game_over:
                break
            tr = await session.submit_move(line)
            if tr.committed is not None:
                out(f"✓ {tr.committed.word}")
        out(render_result(session.state))
        return None
    finally:
        session.unsubscribe(on_change)


async def choose_game(mode: Mode, theme: Theme, read_line: ReadLine = _read_stdin, out: Callable[[str], None] = print) -> Optional[tuple[Mode, Theme]]:
    """Menu between games. Blank answers keep the current choice; None means the player quit."""
    out("\n=== Menu ===")
    while True:
        line = await read_line(f"Mode (pve/pvp) [{'pve' if mode == Mode.VERSUS_MACHINE else 'pvp'}]: ")
        if line is None or line.strip() == ":q":
            return None
        try:
            mode = Mode.parse(line) if line.strip() else mode
        except ValueError as e:
            out(str(e))
            continue
        if mode != Mode.MENU:
            break
    out("Tema: " + ", ".join(f"{t.name.lower()} ({t.value})" for t in Theme))
    while True:
        line = await read_line(f"Tema [{theme.name.lower()}]: ")
        if line is None or line.strip() == ":q":
            return None
        try:
            theme = Theme.parse(line) if line.strip() else theme
        except ValueError as e:
            out(str(e))
            continue
        return mode, theme


async def run(args: argparse.Namespace, read_line: ReadLine = _read_stdin, out: Callable[[str], None] = print) -> dict:
    oracle = LLMOracle(model=args.model)
    cfg = SessionConfig(turn_duration_s=args.turn_seconds, history_log_path=args.history_out)
    session = GameSession(oracle, cfg)
    mode, theme = Mode.parse(args.mode), Theme.parse(args.theme)
    try:
        while True:
            outcome = await play_game(session, mode, theme, read_line=read_line, out=out)
            if outcome == "menu":
                chosen = await choose_game(mode, theme, read_line=read_line, out=out)
                if chosen is None:
                    break
                mode, theme = chosen
                continue
            if outcome is not None:
                break
            again = await read_line("Main lagi? (y/n) ")
            if not again or again.strip().lower() not in ("y", "ya", "yes"):
                break
        return session.metrics()
    finally:
        await session.close()


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Sambung Kata: Indonesian word-chain game.")
    ap.add_argument("--config", default=None, help="Optional JSON config file to load defaults from.")
    ap.add_argument("--mode", choices=["pve", "pvp"], default=None, help="pve: against the AI, pvp: two players on one terminal")
    ap.add_argument("--theme", default=None, help="Theme name or label (any, animals, fruits_veg, places, objects, jobs)")
    ap.add_argument("--model", default=None, help="Oracle model name (overrides config)")
    ap.add_argument("--turn-seconds", type=int, default=None, help="Seconds per turn")
    ap.add_argument("--history-out", default=None, help="Path (file or directory) for the structured history JSON")
    ap.add_argument("--log-level", default=None, help="Python logging level (e.g., INFO, DEBUG)")
    return ap


def resolve_args(args: argparse.Namespace) -> argparse.Namespace:
    """Fill unset CLI options: CLI arg if provided -> config file -> settings default."""
    cfg_dict = load_json_config(args.config) if args.config else {}

    def pick(key, default=None):
        v = getattr(args, key, None)
        if v is not None:
            return v
        if cfg_dict.get(key) is not None:
            return cfg_dict[key]
        return default

    return argparse.Namespace(
        mode=pick("mode", "pve"),
        theme=pick("theme", "any"),
        model=pick("model", SETTINGS.model),
        turn_seconds=int(pick("turn_seconds", SETTINGS.turn_duration_s)),
        history_out=pick("history_out"),
        log_level=str(pick("log_level", "WARNING")).upper(),
    )


def main(argv: Optional[list] = None) -> None:
    args = resolve_args(build_parser().parse_args(argv))
    logging.basicConfig(level=getattr(logging, args.log_level, logging.WARNING), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    log.info("Starting: mode=%s theme=%s model=%s", args.mode, args.theme, args.model)
    metrics = asyncio.run(run(args))
    log.info("Metrics: %s", metrics)


if __name__ == "__main__":
    main()
