"""
Client-facing projections of a Game.

Two views are derived from a Game after every mutation:

    public_snapshot  - broadcast to the whole room
    player_state     - sent privately to one player

All privacy rules live here so they can be tested without driving the
state machine. Hands only ever appear in player_state, and submissions
never carry a player id: the only way to learn who won a round is the
separate last_winner_id field, exposed once the round is scored.
"""

from typing import Optional

from game import Game, RESULT_PHASES, REVEAL_PHASES, GamePhase


def _player_entry(game: Game, player) -> dict:
    return {
        "id": player.id,
        "name": player.name,
        "score": player.score,
        "ready": player.ready,
        "connected": player.connected,
        "is_host": game.is_host(player.id),
    }


def leaderboard_entries(game: Game) -> list[dict]:
    return [{"id": p.id, "name": p.name, "score": p.score} for p in game.leaderboard()]


def submission_entries(game: Game) -> list[dict]:
    """Anonymous submissions in reveal order; empty before judging."""
    if game.phase not in REVEAL_PHASES:
        return []
    return [
        {"id": s.id, "card_id": s.card.id, "card_text": s.card.text}
        for s in game.revealed_submissions()
    ]


def public_snapshot(room_code: str, game: Game) -> dict:
    """
    Build the room-wide view of a game.

    Args:
        room_code: Code of the room the game belongs to.
        game: The game to project.

    Returns:
        JSON-serializable dict, safe to send to every connection in the room.
    """
    judge = game.judge()
    show_result = game.phase in RESULT_PHASES
    winner = game.winner()
    green = game.current_green_card

    return {
        "room_code": room_code,
        "phase": game.phase.value,
        "round": game.round,
        "host_player_id": game.host_player_id,
        "judge_player_id": judge.id if judge else None,
        "last_winner_id": game.last_winner_id if show_result else None,
        "winning_submission_id": game.winning_submission_id if show_result else None,
        "winner_id": winner.id if winner else None,
        "end_reason": game.end_reason if game.phase == GamePhase.GAME_OVER else None,
        "green_card": green.to_client_dict() if green else None,
        "submission_count": len(game.submissions),
        "expected_submission_count": game.expected_submission_count(),
        "players": [_player_entry(game, p) for p in game.players],
        "leaderboard": leaderboard_entries(game),
        "submissions": submission_entries(game),
    }


def player_state(room_code: str, game: Game, player_id: str) -> Optional[dict]:
    """
    Build one player's private view: their hand and submission status.

    Returns:
        The private payload, or None if the player is not seated here.
    """
    player = game.get_player(player_id)
    if not player:
        return None

    judge = game.judge()
    return {
        "room_code": room_code,
        "player_id": player.id,
        "hand": [card.to_client_dict() for card in game.hand(player.id)],
        "submitted": game.has_submitted(player.id),
        "is_judge": bool(judge and judge.id == player.id),
    }
