"""
Game logic for Pears, a party card game.

This module implements the authoritative round protocol: seats, the phase
state machine, private hands, anonymous submissions, judge rotation and
scoring. Everything here is synchronous and run-to-completion; the caller
(room.py) serializes access per room with a lock.

Pears Rules Summary:
    - Every round one player is the judge and a green (adjective) card is shown
    - Every other connected player submits one red (noun) card from their hand
    - Submissions are anonymous until the judge has picked a winner
    - The winning card's owner scores a point; first to the win score takes it
    - The judge role rotates by seat order, skipping disconnected seats

Phase Flow:
    LOBBY -> SUBMIT -> JUDGE_PICK -> SCORE -> SUBMIT (next round) ...
                                  \\-> GAME_OVER -> SUBMIT (rematch)

Every command method validates first and raises a GameError subclass
without touching state; only then does it mutate.
"""

import logging
import random
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from catalog import Card, CardCatalog
from config import GameSettings
from constants import FALLBACK_PLAYER_NAME, GREEN, RED
from deck import Deck, shuffle
from errors import (
    CardNotInHand,
    DuplicateSubmission,
    GameAlreadyStarted,
    InsufficientPlayers,
    InvalidWinner,
    NoCardsRemain,
    NotAuthorized,
    NotJoined,
    WrongPhase,
)

logger = logging.getLogger(__name__)


class GamePhase(str, Enum):
    """
    Phases of a Pears game.

    Flow: LOBBY -> SUBMIT -> JUDGE_PICK -> SCORE -> SUBMIT ...
    Once someone reaches the win score: GAME_OVER
    """

    LOBBY = "lobby"              # Waiting for players to join and ready up
    SUBMIT = "submit"            # Non-judges choosing a card from their hand
    JUDGE_PICK = "judge_pick"    # Submissions revealed, judge choosing
    SCORE = "score"              # Winner shown, waiting for host to advance
    GAME_OVER = "game_over"      # Someone hit the win score (or cards ran out)


# Phases in which submitted card texts are visible to everyone
REVEAL_PHASES = (GamePhase.JUDGE_PICK, GamePhase.SCORE, GamePhase.GAME_OVER)

# Phases in which the round winner may be shown
RESULT_PHASES = (GamePhase.SCORE, GamePhase.GAME_OVER)

END_REASON_WIN = "win"
END_REASON_NO_CARDS = "no_cards_remain"


def sanitize_name(raw, max_length: int = 24) -> str:
    """Trim and cap a display name, falling back to a generic one."""
    name = str(raw if raw is not None else "").strip()
    if not name:
        return FALLBACK_PLAYER_NAME
    return name[:max_length]


@dataclass
class Player:
    """
    A seat in a Pears game.

    Attributes:
        id: Stable identifier, issued at first join. Also the reconnect token.
        name: Display name.
        score: Rounds won this game.
        ready: Lobby ready flag.
        connected: Whether a live connection is bound to this seat.
    """

    id: str
    name: str
    score: int = 0
    ready: bool = False
    connected: bool = True


@dataclass
class Submission:
    """A red card played into the current round."""

    id: str
    player_id: str
    card: Card


@dataclass
class Game:
    """
    Main game state and logic controller for Pears.

    Attributes:
        catalog: Card pools every deck reset draws from.
        settings: Win score, hand size and player threshold.
        room_code: Code of the owning room (used for log context only).
        players: Seats in join order. Seat order drives judge rotation.
        host_player_id: Player allowed to start and advance the game.
        phase: Current game phase.
        round: Round counter, 0 until the first start.
        judge_index: Seat index of the judge (self-corrected on every read).
        submissions: Submission id -> Submission for the current round.
        submission_order: Shuffled reveal order, filled on entering JUDGE_PICK.
        hands: Player id -> private hand. Never broadcast.
        red_deck: Noun cards.
        green_deck: Adjective cards.
        current_green_card: The card being judged against this round.
        last_winner_id: Winner of the latest judged round.
        winning_submission_id: Submission the judge picked.
        end_reason: Why the game ended ("win" or "no_cards_remain").
    """

    catalog: CardCatalog = field(default_factory=CardCatalog)
    settings: GameSettings = field(default_factory=GameSettings)
    room_code: str = ""
    players: list[Player] = field(default_factory=list)
    host_player_id: Optional[str] = None
    phase: GamePhase = GamePhase.LOBBY
    round: int = 0
    judge_index: int = 0
    submissions: dict[str, Submission] = field(default_factory=dict)
    submission_order: list[str] = field(default_factory=list)
    hands: dict[str, list[Card]] = field(default_factory=dict)
    current_green_card: Optional[Card] = None
    last_winner_id: Optional[str] = None
    winning_submission_id: Optional[str] = None
    end_reason: Optional[str] = None
    rng: random.Random = field(default_factory=random.Random, repr=False, compare=False)
    _submission_seq: int = field(default=0, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.red_deck = Deck(rng=self.rng)
        self.green_deck = Deck(rng=self.rng)

    # -------------------------------------------------------------------------
    # Seats
    # -------------------------------------------------------------------------

    def get_player(self, player_id: Optional[str]) -> Optional[Player]:
        """Find a player by ID, or None if not seated here."""
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def connected_players(self) -> list[Player]:
        return [p for p in self.players if p.connected]

    def is_host(self, player_id: str) -> bool:
        return player_id is not None and player_id == self.host_player_id

    def _new_player_id(self) -> str:
        while True:
            player_id = uuid.uuid4().hex[:12]
            if not self.get_player(player_id):
                return player_id

    def add_player(self, name: str) -> Player:
        """
        Seat a new player.

        The first seated player becomes host. New seats are only handed out
        in the lobby; returning players use reconnect() instead.

        Args:
            name: Raw display name (sanitized here).

        Returns:
            The new Player.

        Raises:
            GameAlreadyStarted: If the game has left the lobby.
        """
        if self.phase != GamePhase.LOBBY:
            raise GameAlreadyStarted()

        player = Player(
            id=self._new_player_id(),
            name=sanitize_name(name, self.settings.max_name_length),
        )
        self.players.append(player)
        self.hands.setdefault(player.id, [])
        if self.host_player_id is None:
            self.host_player_id = player.id

        logger.info(
            f"Player {player.name} seated at {len(self.players) - 1}",
            extra={"room_code": self.room_code, "player_id": player.id},
        )
        return player

    def reconnect(self, player_id: str, name: str = "") -> Optional[Player]:
        """
        Reattach a returning player to their seat, in any phase.

        The name is only updated when the client sent a real one.

        Returns:
            The Player, or None if no such seat exists.
        """
        player = self.get_player(player_id)
        if not player:
            return None

        player.connected = True
        new_name = sanitize_name(name, self.settings.max_name_length)
        if new_name != FALLBACK_PLAYER_NAME:
            player.name = new_name
        if self.host_player_id is None:
            self.host_player_id = player.id

        logger.info(
            f"Player {player.name} rejoined during {self.phase.value}",
            extra={"room_code": self.room_code, "player_id": player.id},
        )
        return player

    def mark_disconnected(self, player_id: str) -> Optional[Player]:
        """
        Mark a seat as disconnected.

        Hands and scores are kept for a later reconnect. Host passes to the
        next connected seat, and the submit phase is re-checked because the
        number of expected submissions just dropped.

        If the judge leaves mid-round and the role falls to a player who
        already submitted, that submission is withdrawn back into their
        hand; a judge never picks among their own cards.

        Returns:
            The Player, or None if no such seat exists.
        """
        player = self.get_player(player_id)
        if not player:
            return None

        previous_judge = self.judge()
        player.connected = False
        player.ready = False

        if self.host_player_id == player.id:
            self._transfer_host(self.players.index(player))

        if self.phase in (GamePhase.SUBMIT, GamePhase.JUDGE_PICK):
            judge = self.judge()
            if judge and previous_judge and judge.id != previous_judge.id:
                self._withdraw_submission(judge.id)
            if self.phase == GamePhase.JUDGE_PICK and not self.submissions:
                # Nothing left to judge: reopen submissions
                self.phase = GamePhase.SUBMIT
                self.submission_order = []

        self._check_submit_complete()

        logger.info(
            f"Player {player.name} disconnected during {self.phase.value}",
            extra={"room_code": self.room_code, "player_id": player.id},
        )
        return player

    def _transfer_host(self, from_index: int) -> None:
        count = len(self.players)
        for step in range(1, count + 1):
            candidate = self.players[(from_index + step) % count]
            if candidate.connected:
                self.host_player_id = candidate.id
                return
        # Nobody connected: hand it to the next seat, the room is about to be collected anyway
        if count > 1:
            self.host_player_id = self.players[(from_index + 1) % count].id
        else:
            self.host_player_id = None

    # -------------------------------------------------------------------------
    # Judge rotation
    # -------------------------------------------------------------------------

    def judge(self) -> Optional[Player]:
        """
        Current judge: first connected seat scanning forward from judge_index.

        Writes the found index back, so a disconnected judge is replaced the
        moment anyone looks.

        Returns:
            The judge, or None if nobody is connected.
        """
        count = len(self.players)
        for offset in range(count):
            index = (self.judge_index + offset) % count
            candidate = self.players[index]
            if candidate.connected:
                self.judge_index = index
                return candidate
        return None

    def _next_judge_index(self) -> int:
        count = len(self.players)
        for step in range(1, count + 1):
            index = (self.judge_index + step) % count
            if self.players[index].connected:
                return index
        return self.judge_index

    def expected_submission_count(self) -> int:
        """Connected players other than the judge."""
        judge = self.judge()
        if not judge:
            return 0
        return sum(1 for p in self.players if p.connected and p.id != judge.id)

    # -------------------------------------------------------------------------
    # Hands
    # -------------------------------------------------------------------------

    def hand(self, player_id: str) -> list[Card]:
        return self.hands.setdefault(player_id, [])

    def deal_to_hand_size(self) -> None:
        """Top every seat up to hand_size red cards, as far as supply allows."""
        for player in self.players:
            hand = self.hand(player.id)
            while len(hand) < self.settings.hand_size:
                card = self.red_deck.draw()
                if card is None:
                    logger.warning(
                        "Red cards exhausted while dealing",
                        extra={"room_code": self.room_code},
                    )
                    return
                hand.append(card)

    def remove_from_hand(self, player_id: str, card_id: str) -> Optional[Card]:
        """Take a card out of a hand by id. Returns None (no change) if absent."""
        hand = self.hand(player_id)
        for index, card in enumerate(hand):
            if card.id == card_id:
                return hand.pop(index)
        return None

    def has_submitted(self, player_id: str) -> bool:
        return any(s.player_id == player_id for s in self.submissions.values())

    # -------------------------------------------------------------------------
    # Lobby
    # -------------------------------------------------------------------------

    def toggle_ready(self, player_id: str) -> bool:
        """
        Flip a player's ready flag in the lobby.

        Returns:
            The new ready value.
        """
        if self.phase != GamePhase.LOBBY:
            raise WrongPhase("Ready is only available in the lobby.")
        player = self._require_player(player_id)
        player.ready = not player.ready
        return player.ready

    def start(self, player_id: str) -> None:
        """Host starts the game from the lobby."""
        if self.phase != GamePhase.LOBBY:
            raise WrongPhase("The game has already started.")
        self._require_host(player_id, "Only the host can start the game.")
        self._require_min_players("start")
        self._reset_and_begin()

    def rematch(self, player_id: str) -> None:
        """Host restarts a finished game with everyone's scores zeroed."""
        if self.phase != GamePhase.GAME_OVER:
            raise WrongPhase("Rematch is only available after game over.")
        self._require_host(player_id, "Only the host can start a rematch.")
        self._require_min_players("rematch")
        self._reset_and_begin()

    def _reset_and_begin(self) -> None:
        if not self.catalog.green:
            raise NoCardsRemain("There are no green cards to play with.")

        self.round = 1
        self.judge_index = 0
        self.submissions.clear()
        self.submission_order = []
        self.last_winner_id = None
        self.winning_submission_id = None
        self.end_reason = None
        self.current_green_card = None
        self.hands = {}
        for player in self.players:
            player.score = 0
            player.ready = False
            self.hands[player.id] = []

        self.red_deck.reset(self.catalog.cards(RED))
        self.green_deck.reset(self.catalog.cards(GREEN))

        logger.info(
            f"Game started with {len(self.connected_players())} connected players",
            extra={"room_code": self.room_code},
        )
        self._begin_submit_phase()

    # -------------------------------------------------------------------------
    # Round flow
    # -------------------------------------------------------------------------

    def _begin_submit_phase(self) -> None:
        self.phase = GamePhase.SUBMIT
        self.submissions.clear()
        self.submission_order = []
        self.last_winner_id = None
        self.winning_submission_id = None

        if self.current_green_card:
            self.green_deck.discard([self.current_green_card])
        self.current_green_card = self.green_deck.draw()

        if self.current_green_card is None:
            self.phase = GamePhase.GAME_OVER
            self.end_reason = END_REASON_NO_CARDS
            logger.warning(
                "No green cards remain, ending game",
                extra={"room_code": self.room_code},
            )
            return

        self.deal_to_hand_size()

    def submit_card(self, player_id: str, card_id: str) -> Submission:
        """
        Play a red card from a hand into the round.

        Args:
            player_id: The submitting player.
            card_id: Id of a card currently in that player's hand.

        Returns:
            The new Submission.

        Raises:
            WrongPhase: Submissions are not open.
            NotAuthorized: Caller is not a connected player, or is the judge.
            DuplicateSubmission: Caller already submitted this round.
            CardNotInHand: The card is not in the caller's hand.
        """
        if self.phase != GamePhase.SUBMIT:
            raise WrongPhase("Submissions are not open.")

        player = self._require_player(player_id)
        if not player.connected:
            raise NotAuthorized("You are not an active player in this room.")

        judge = self.judge()
        if judge and judge.id == player.id:
            raise NotAuthorized("The judge cannot submit a card.")

        if self.has_submitted(player.id):
            raise DuplicateSubmission()

        card = self.remove_from_hand(player.id, card_id)
        if card is None:
            raise CardNotInHand()

        self._submission_seq += 1
        submission = Submission(id=f"s-{self._submission_seq}", player_id=player.id, card=card)
        self.submissions[submission.id] = submission

        self._check_submit_complete()
        return submission

    def _withdraw_submission(self, player_id: str) -> Optional[Submission]:
        """Take a player's submission out of the round and return its card to their hand."""
        for submission in list(self.submissions.values()):
            if submission.player_id == player_id:
                del self.submissions[submission.id]
                if submission.id in self.submission_order:
                    self.submission_order.remove(submission.id)
                self.hand(player_id).append(submission.card)
                logger.info(
                    "New judge's submission returned to hand",
                    extra={"room_code": self.room_code, "player_id": player_id},
                )
                return submission
        return None

    def _check_submit_complete(self) -> None:
        if self.phase != GamePhase.SUBMIT:
            return
        expected = self.expected_submission_count()
        if expected > 0 and len(self.submissions) >= expected:
            self.submission_order = shuffle(self.submissions, self.rng)
            self.phase = GamePhase.JUDGE_PICK
            logger.info(
                f"All {len(self.submissions)} submissions in, judging",
                extra={"room_code": self.room_code},
            )

    def revealed_submissions(self) -> list[Submission]:
        """Submissions in reveal order (empty until judging starts)."""
        if self.phase not in REVEAL_PHASES:
            return []
        return [self.submissions[sid] for sid in self.submission_order if sid in self.submissions]

    def judge_pick(self, player_id: str, submission_id: str) -> Player:
        """
        The judge picks the round's winning submission.

        All submitted cards go to the red discard pile. Reaching the win
        score ends the game; otherwise hands are topped up and the room
        waits in SCORE for the host.

        Returns:
            The winning Player.

        Raises:
            WrongPhase: Not judging right now.
            NotAuthorized: Caller is not the current judge.
            InvalidWinner: No such submission this round.
        """
        if self.phase != GamePhase.JUDGE_PICK:
            raise WrongPhase("The room is not in judge pick phase.")

        judge = self.judge()
        if not judge or judge.id != player_id:
            raise NotAuthorized("Only the active judge can pick the winner.")

        submission = self.submissions.get(submission_id)
        if not submission:
            raise InvalidWinner()

        winner = self.get_player(submission.player_id)
        if not winner:
            raise InvalidWinner("Winner not found.")

        self.red_deck.discard(s.card for s in self.submissions.values())
        winner.score += 1
        self.last_winner_id = winner.id
        self.winning_submission_id = submission.id

        logger.info(
            f"Round {self.round} won by {winner.name} ({winner.score} points)",
            extra={"room_code": self.room_code, "player_id": winner.id},
        )

        if winner.score >= self.settings.win_score:
            self.phase = GamePhase.GAME_OVER
            self.end_reason = END_REASON_WIN
            self.submissions.clear()
            self.submission_order = []
            self.winning_submission_id = None
            if self.current_green_card:
                self.green_deck.discard([self.current_green_card])
            self.current_green_card = None
            logger.info(f"Game over, {winner.name} wins", extra={"room_code": self.room_code})
            return winner

        self.phase = GamePhase.SCORE
        self.deal_to_hand_size()
        return winner

    def next_round(self, player_id: str) -> None:
        """Host advances from SCORE to the next round; the judge role rotates."""
        if self.phase != GamePhase.SCORE:
            raise WrongPhase("The room is not ready for the next round.")
        self._require_host(player_id, "Only the host can advance to the next round.")

        self.judge_index = self._next_judge_index()
        self.round += 1
        self._begin_submit_phase()

    # -------------------------------------------------------------------------
    # Scoring
    # -------------------------------------------------------------------------

    def leaderboard(self) -> list[Player]:
        """Players by score descending, ties by name then id."""
        return sorted(self.players, key=lambda p: (-p.score, p.name, p.id))

    def winner(self) -> Optional[Player]:
        """Leaderboard head once the game is over."""
        if self.phase != GamePhase.GAME_OVER or not self.players:
            return None
        return self.leaderboard()[0]

    # -------------------------------------------------------------------------
    # Guards and bookkeeping
    # -------------------------------------------------------------------------

    def _require_player(self, player_id: str) -> Player:
        player = self.get_player(player_id)
        if not player:
            raise NotJoined()
        return player

    def _require_host(self, player_id: str, message: str) -> Player:
        player = self._require_player(player_id)
        if not self.is_host(player.id):
            raise NotAuthorized(message)
        return player

    def _require_min_players(self, action: str) -> None:
        minimum = self.settings.min_players
        if len(self.connected_players()) < minimum:
            raise InsufficientPlayers(
                f"At least {minimum} connected players are required to {action}."
            )

    def accounted_cards(self, color: str) -> list[Card]:
        """
        Every card of one color the game currently holds, wherever it is.

        For a consistent game this is a permutation of the catalog's pool.
        Submission cards count only while still in play; after a judge
        pick they already sit in the discard pile.
        """
        if color == RED:
            cards = self.red_deck.all_cards()
            for hand in self.hands.values():
                cards.extend(hand)
            if self.phase in (GamePhase.SUBMIT, GamePhase.JUDGE_PICK):
                cards.extend(s.card for s in self.submissions.values())
            return cards
        if color == GREEN:
            cards = self.green_deck.all_cards()
            if self.current_green_card:
                cards.append(self.current_green_card)
            return cards
        raise ValueError(f"Unknown card color: {color}")
