"""
Game logic for Close Rummy.

This module implements the core mechanics of the Close ("Power Rummy")
card game: card/deck management, player state, the draw -> drop turn
protocol with its special-card effects, and round settlement.

Close Rummy Rules Summary:
    - 2-7 players, each dealt 7 cards from a 54-card deck (52 + 2 jokers)
    - On your turn: draw (from the draw pile or the open card), then drop
      one or more cards of the same rank onto the discard pile
    - You may drop without drawing if your cards match the open card's rank
    - Dropping a 7 forces the next player to draw 2 per 7 dropped
    - Dropping a J skips one player per J dropped
    - Instead of drawing you may call CLOSE: the round ends and hands are
      scored. Lowest hand wins; a closer who wasn't lowest pays double the
      highest hand.
    - Emptying your hand closes the round automatically

Turn States:
    AWAITING_DRAW -> (draw) -> AWAITING_DROP -> (drop) -> next player
    AWAITING_DRAW -> (close) -> round over
"""

import itertools
import logging
import random
from collections import Counter, deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from constants import (
    DEFAULT_CARD_VALUES,
    DRAW_PENALTY_PER_CARD,
    DRAW_RANK,
    FULL_DECK_SIZE,
    JOKERS_PER_DECK,
    MAX_PLAYERS,
    MIN_PLAYERS,
    ROOM_LOG_LIMIT,
    SKIP_RANK,
    SNAPSHOT_LOG_TAIL,
    START_CARDS,
)
from errors import (
    AlreadyDrawn,
    InsufficientPlayers,
    InvalidSelection,
    InvariantViolation,
    MixedRanks,
    MustDrawFirst,
    NoRoundInProgress,
    NotInRoom,
    NotYourTurn,
    ResourceExhaustion,
    RoomFull,
    RoundInProgress,
)

logger = logging.getLogger(__name__)


class Suit(Enum):
    """Card suits for a standard deck."""

    SPADES = "♠"
    HEARTS = "♥"
    DIAMONDS = "♦"
    CLUBS = "♣"


class Rank(Enum):
    """
    Card ranks with their display values.

    Scoring:
        - Ace: 1 point
        - 2-10: Face value
        - Jack/Queen/King: 10 points
        - Joker: 0 points
    """

    ACE = "A"
    TWO = "2"
    THREE = "3"
    FOUR = "4"
    FIVE = "5"
    SIX = "6"
    SEVEN = "7"
    EIGHT = "8"
    NINE = "9"
    TEN = "10"
    JACK = "J"
    QUEEN = "Q"
    KING = "K"
    JOKER = "JOKER"


# Map Rank enum to point values (derived from constants.py as single source of truth)
RANK_VALUES: dict[Rank, int] = {rank: DEFAULT_CARD_VALUES[rank.value] for rank in Rank}

# Process-wide so that no two cards ever share an id, across rooms and rounds
_card_ids = itertools.count(1)


def next_card_id() -> int:
    """Allocate the next process-unique card id."""
    return next(_card_ids)


@dataclass(frozen=True)
class Card:
    """
    An immutable playing card.

    Cards are created once when a deck is built and then only move between
    piles and hands by reference.

    Attributes:
        id: Process-unique identifier, used by clients to select cards.
        rank: The card's rank (A, 2-10, J, Q, K, or JOKER).
        suit: The card's suit, or None for jokers.
    """

    id: int
    rank: Rank
    suit: Optional[Suit] = None

    @property
    def value(self) -> int:
        """Point value of the card when totalling a hand."""
        return RANK_VALUES[self.rank]

    def label(self) -> str:
        """Short human-readable name, e.g. '7♥' or 'JOKER'."""
        return f"{self.rank.value}{self.suit.value if self.suit else ''}"

    def to_dict(self) -> dict:
        """Convert card to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "rank": self.rank.value,
            "suit": self.suit.value if self.suit else None,
            "value": self.value,
        }


class Deck:
    """
    The two piles of a round: the draw pile and the discard pile.

    Both are lists whose last element is the top card. The deck is built
    and shuffled on construction; a fresh Deck is created every round.
    """

    def __init__(self, rng: Optional[random.Random] = None) -> None:
        """
        Initialize and shuffle a new 54-card deck.

        Args:
            rng: Random source used for every shuffle. Pass a seeded
                 random.Random for deterministic tests.
        """
        self.rng = rng or random.Random()
        self.draw_pile: list[Card] = self.build()
        self.discard_pile: list[Card] = []
        self.shuffle(self.draw_pile)

    @staticmethod
    def build() -> list[Card]:
        """Create the 52 ranked cards plus jokers, each with a fresh id."""
        cards = []
        for suit in Suit:
            for rank in Rank:
                if rank != Rank.JOKER:
                    cards.append(Card(next_card_id(), rank, suit))
        for _ in range(JOKERS_PER_DECK):
            cards.append(Card(next_card_id(), Rank.JOKER))
        return cards

    def shuffle(self, cards: list[Card]) -> None:
        """Fisher-Yates shuffle of `cards` in place."""
        for i in range(len(cards) - 1, 0, -1):
            j = self.rng.randint(0, i)
            cards[i], cards[j] = cards[j], cards[i]

    @property
    def open_card(self) -> Optional[Card]:
        """The exposed top card of the discard pile (if any)."""
        if self.discard_pile:
            return self.discard_pile[-1]
        return None

    def replenish(self) -> bool:
        """
        Refill an empty draw pile from the discard pile.

        Keeps the top discard card exposed and shuffles the rest into
        the new draw pile.

        Returns:
            True if the draw pile was refilled.
        """
        if self.draw_pile or len(self.discard_pile) <= 1:
            return False

        top_card = self.discard_pile.pop()
        pile = self.discard_pile
        self.shuffle(pile)
        self.draw_pile = pile
        self.discard_pile = [top_card]
        logger.debug(f"Reshuffled {len(pile)} discards into the draw pile")
        return True

    def draw(self) -> Card:
        """
        Draw the top card of the draw pile, replenishing if needed.

        Raises:
            ResourceExhaustion: If neither pile can supply a card.
        """
        if not self.draw_pile:
            self.replenish()
        if not self.draw_pile:
            raise ResourceExhaustion()
        return self.draw_pile.pop()

    def take_open_card(self) -> Optional[Card]:
        """Take the exposed discard card, or None if the pile is empty."""
        if self.discard_pile:
            return self.discard_pile.pop()
        return None

    def card_count(self) -> int:
        """Number of cards across both piles."""
        return len(self.draw_pile) + len(self.discard_pile)


@dataclass
class Player:
    """
    A player in the Close Rummy game.

    Attributes:
        id: Stable logical identifier (survives reconnects).
        name: Display name.
        hand: Cards held by the player.
        score: Cumulative points across rounds (lower is better).
        has_drawn: Whether the player has drawn during their current turn.
        connected: Whether the player currently has a live connection.
    """

    id: str
    name: str
    hand: list[Card] = field(default_factory=list)
    score: int = 0
    has_drawn: bool = False
    connected: bool = True

    def hand_total(self) -> int:
        """Sum of card values in the hand."""
        return sum(card.value for card in self.hand)

    def select_cards(self, card_ids: list[int]) -> list[Card]:
        """
        Resolve card ids against the hand, keeping selection order.

        Duplicate ids are collapsed to their first occurrence.

        Raises:
            InvalidSelection: If nothing is selected or an id isn't held.
        """
        by_id = {card.id: card for card in self.hand}
        selected = []
        for card_id in dict.fromkeys(card_ids):
            card = by_id.get(card_id)
            if card is None:
                raise InvalidSelection()
            selected.append(card)
        if not selected:
            raise InvalidSelection("Select at least one card")
        return selected

    def remove_cards(self, cards: list[Card]) -> None:
        """Remove the given cards from the hand."""
        ids = {card.id for card in cards}
        self.hand = [card for card in self.hand if card.id not in ids]


class RoundPhase(Enum):
    """Whether a room is between rounds or playing one."""

    LOBBY = "lobby"
    IN_ROUND = "in_round"


class TurnPhase(Enum):
    """What the turn player must do next."""

    AWAITING_DRAW = "awaiting_draw"
    AWAITING_DROP = "awaiting_drop"


@dataclass
class RoundResult:
    """
    Outcome of a settled round.

    Attributes:
        round_number: Which round of the room this was (1-indexed).
        closer_id: Player who called close (or emptied their hand).
        closer_correct: Whether the closer held the lowest hand.
        auto_close: True if the round ended because a hand was emptied.
        totals: Hand total per player id.
        points: Points added to each player's cumulative score.
    """

    round_number: int
    closer_id: str
    closer_correct: bool
    auto_close: bool
    totals: dict[str, int]
    points: dict[str, int]

    def to_dict(self) -> dict:
        return {
            "roundNumber": self.round_number,
            "closerId": self.closer_id,
            "closerCorrect": self.closer_correct,
            "autoClose": self.auto_close,
            "totals": dict(self.totals),
            "points": dict(self.points),
        }


def settle_round(
    totals: dict[str, int],
    closer_id: str,
    round_number: int = 0,
    auto_close: bool = False,
) -> RoundResult:
    """
    Score a round from each player's hand total.

    Rules:
        - If the closer holds the lowest total, the closer scores 0 and
          every other player adds their own total.
        - Otherwise the closer adds 2x the highest total, every player at
          the lowest total scores 0, and everyone else adds their own total.

    Args:
        totals: Hand total per player id (insertion order = roster order).
        closer_id: Player who ended the round.
        round_number: Round index, carried into the result.
        auto_close: Whether the closer emptied their hand.

    Returns:
        The RoundResult with points per player.
    """
    lowest = min(totals.values())
    highest = max(totals.values())
    closer_correct = totals[closer_id] == lowest

    points = {}
    for player_id, total in totals.items():
        if player_id == closer_id:
            points[player_id] = 0 if closer_correct else 2 * highest
        elif not closer_correct and total == lowest:
            points[player_id] = 0
        else:
            points[player_id] = total

    return RoundResult(
        round_number=round_number,
        closer_id=closer_id,
        closer_correct=closer_correct,
        auto_close=auto_close,
        totals=dict(totals),
        points=points,
    )


@dataclass
class Game:
    """
    Round state and rules for one room.

    Manages:
        - Roster order (which is also the turn rotation)
        - Deck and discard pile for the current round
        - The draw/drop turn protocol and pending special-card effects
        - Settlement and cumulative scores

    Attributes:
        players: Players in seat order.
        deck: Piles of the current round (None between rounds).
        phase: LOBBY between rounds, IN_ROUND while playing.
        turn_player_id: ID of the player whose turn it is.
        pending_skips: Seats to jump on the next advance.
        pending_draw: Cards the next drawer is forced to take.
        round_number: Number of rounds started in this room.
        last_round: Result of the most recently settled round.
        log: Recent human-readable events, capped at ROOM_LOG_LIMIT.
        rng: Random source handed to each new Deck.
    """

    players: list[Player] = field(default_factory=list)
    deck: Optional[Deck] = None
    phase: RoundPhase = RoundPhase.LOBBY
    turn_player_id: Optional[str] = None
    pending_skips: int = 0
    pending_draw: int = 0
    round_number: int = 0
    last_round: Optional[RoundResult] = None
    log: deque = field(default_factory=lambda: deque(maxlen=ROOM_LOG_LIMIT))
    rng: random.Random = field(default_factory=random.Random, repr=False)

    def add_log(self, message: str) -> None:
        """Append an entry to the room's event log."""
        self.log.append(message)
        logger.debug(message)

    # -------------------------------------------------------------------------
    # Player Management
    # -------------------------------------------------------------------------

    def add_player(self, player: Player) -> None:
        """
        Seat a player at the end of the roster.

        Raises:
            RoomFull: If the roster is at MAX_PLAYERS.
            RoundInProgress: If a round is being played.
        """
        if len(self.players) >= MAX_PLAYERS:
            raise RoomFull()
        if self.phase != RoundPhase.LOBBY:
            raise RoundInProgress()
        self.players.append(player)

    def remove_player(self, player_id: str) -> Optional[Player]:
        """
        Remove a player from the roster.

        Mid-round, the departed player's hand goes to the bottom of the
        draw pile. If they held the turn it passes to the next connected
        player without consuming pending skips/draws. If fewer than
        MIN_PLAYERS remain the round is abandoned.

        Args:
            player_id: The player to remove.

        Returns:
            The removed Player, or None if not found.
        """
        idx = self.index_of(player_id)
        if idx is None:
            return None

        held_turn = self.turn_player_id == player_id
        removed = self.players.pop(idx)

        if self.phase == RoundPhase.IN_ROUND:
            self.deck.draw_pile[0:0] = removed.hand
            removed.hand = []

            if len(self.players) < MIN_PLAYERS:
                self.abandon_round(f"{removed.name} left, not enough players")
            else:
                if held_turn:
                    self._pass_turn_to_connected(idx)
                self.check_invariants()

        return removed

    def get_player(self, player_id: str) -> Optional[Player]:
        """Find a player by their ID."""
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def index_of(self, player_id: str) -> Optional[int]:
        """Roster index of a player, or None."""
        for i, player in enumerate(self.players):
            if player.id == player_id:
                return i
        return None

    def current_player(self) -> Optional[Player]:
        """Get the player whose turn it currently is."""
        if self.turn_player_id is None:
            return None
        return self.get_player(self.turn_player_id)

    @property
    def turn_phase(self) -> Optional[TurnPhase]:
        """AWAITING_DRAW / AWAITING_DROP for the turn player, None in the lobby."""
        current = self.current_player()
        if self.phase != RoundPhase.IN_ROUND or current is None:
            return None
        return TurnPhase.AWAITING_DROP if current.has_drawn else TurnPhase.AWAITING_DRAW

    # -------------------------------------------------------------------------
    # Round Lifecycle
    # -------------------------------------------------------------------------

    def start_round(self) -> None:
        """
        Deal a new round.

        Builds and shuffles a fresh deck, deals START_CARDS to each player
        round-robin in roster order, and flips the open card. An open 7
        forces the first player to draw 2; an open J skips the first player.

        Raises:
            RoundInProgress: If a round is already being played.
            InsufficientPlayers: If fewer than MIN_PLAYERS are seated.
        """
        if self.phase == RoundPhase.IN_ROUND:
            raise RoundInProgress()
        if len(self.players) < MIN_PLAYERS:
            raise InsufficientPlayers(MIN_PLAYERS)

        self.deck = Deck(rng=self.rng)
        self.pending_draw = 0
        self.pending_skips = 0
        self.round_number += 1
        self.phase = RoundPhase.IN_ROUND

        for player in self.players:
            player.hand = []
            player.has_drawn = False

        self._set_turn_by_index(0)

        for _ in range(START_CARDS):
            for player in self.players:
                card = self._draw_from_pile()
                if card:
                    player.hand.append(card)

        first_card = self._draw_from_pile()
        if first_card:
            self.deck.discard_pile.append(first_card)
            self.add_log(f"Round {self.round_number} started! Open card: {first_card.label()}")

            if first_card.rank.value == DRAW_RANK:
                self.pending_draw = DRAW_PENALTY_PER_CARD
                self.add_log(f"Open card {DRAW_RANK} → next player must draw {self.pending_draw}")
            elif first_card.rank.value == SKIP_RANK:
                self.pending_skips = 1
                self.add_log(f"Open card {SKIP_RANK} → next player is skipped")

        self.check_invariants()

    def abandon_round(self, reason: str) -> None:
        """End the current round without scoring and return to the lobby."""
        self.add_log(f"Round abandoned: {reason}")
        logger.info(f"Round {self.round_number} abandoned: {reason}")
        self._clear_round()

    def _clear_round(self) -> None:
        for player in self.players:
            player.hand = []
            player.has_drawn = False
        self.deck = None
        self.pending_draw = 0
        self.pending_skips = 0
        self.turn_player_id = None
        self.phase = RoundPhase.LOBBY

    # -------------------------------------------------------------------------
    # Turn Actions
    # -------------------------------------------------------------------------

    def _require_turn(self, player_id: str) -> Player:
        """Resolve the acting player and check they hold the turn."""
        if self.phase != RoundPhase.IN_ROUND:
            raise NoRoundInProgress()
        player = self.get_player(player_id)
        if player is None:
            raise NotInRoom()
        if player_id != self.turn_player_id:
            raise NotYourTurn()
        return player

    def draw(self, player_id: str, from_discard: bool = False) -> list[Card]:
        """
        Draw the turn's cards: pending_draw of them if set, else one.

        With from_discard every card comes off the top of the discard
        pile while it has any; once it is empty the rest come from the
        draw pile. A card that can't be supplied by either pile is skipped.

        Args:
            player_id: ID of the player drawing.
            from_discard: Take from the discard pile instead of the draw pile.

        Returns:
            The cards added to the player's hand.

        Raises:
            NoRoundInProgress, NotInRoom, NotYourTurn, AlreadyDrawn
        """
        player = self._require_turn(player_id)
        if player.has_drawn:
            raise AlreadyDrawn()

        count = self.pending_draw if self.pending_draw > 0 else 1
        drawn = []
        for _ in range(count):
            card = self.deck.take_open_card() if from_discard else None
            if card is None:
                card = self._draw_from_pile()
            if card:
                player.hand.append(card)
                drawn.append(card)

        player.has_drawn = True
        self.pending_draw = 0

        if from_discard and drawn:
            self.add_log(f"{player.name} took {len(drawn)} card(s) from the discard pile")
        else:
            self.add_log(f"{player.name} drew {len(drawn)} card(s)")

        self.check_invariants()
        return drawn

    def drop(self, player_id: str, card_ids: list[int]) -> list[Card]:
        """
        Drop one or more same-rank cards onto the discard pile.

        Allowed after drawing, or without drawing when the rank matches
        the open card. Jacks add skips, 7s add forced draws. Emptying the
        hand ends the round as a close by the dropping player; otherwise
        the turn advances.

        Args:
            player_id: ID of the player dropping.
            card_ids: Ids of the cards to drop, in the order to discard them.

        Returns:
            The dropped cards.

        Raises:
            NoRoundInProgress, NotInRoom, NotYourTurn, InvalidSelection,
            MixedRanks, MustDrawFirst
        """
        player = self._require_turn(player_id)
        selected = player.select_cards(card_ids)

        ranks = {card.rank for card in selected}
        if len(ranks) != 1:
            raise MixedRanks()
        rank = selected[0].rank

        open_card = self.deck.open_card
        matches_open = open_card is not None and open_card.rank == rank
        if not player.has_drawn and not matches_open:
            raise MustDrawFirst()

        player.remove_cards(selected)
        self.deck.discard_pile.extend(selected)

        if rank.value == SKIP_RANK:
            self.pending_skips += len(selected)
            self.add_log(f"{player.name} dropped {len(selected)}{SKIP_RANK} - skipping next players")
        elif rank.value == DRAW_RANK:
            self.pending_draw += DRAW_PENALTY_PER_CARD * len(selected)
            self.add_log(f"{player.name} dropped {len(selected)}{DRAW_RANK} - next draws {self.pending_draw}")
        else:
            self.add_log(f"{player.name} dropped {len(selected)}×{rank.value}")

        self.check_invariants()

        if not player.hand:
            self.add_log(f"{player.name} emptied their hand")
            self._end_round(player.id, auto_close=True)
            return selected

        player.has_drawn = False
        self.advance_turn()
        return selected

    def close(self, player_id: str) -> RoundResult:
        """
        Call close: end the round and settle scores.

        Only legal at the start of the caller's turn, before drawing.

        Raises:
            NoRoundInProgress, NotInRoom, NotYourTurn, AlreadyDrawn
        """
        player = self._require_turn(player_id)
        if player.has_drawn:
            raise AlreadyDrawn("Close must be called before drawing")

        self.add_log(f"🏁 {player.name} called CLOSE with {player.hand_total()} pts")
        return self._end_round(player.id)

    # -------------------------------------------------------------------------
    # Turn & Round Flow (Internal)
    # -------------------------------------------------------------------------

    def _draw_from_pile(self) -> Optional[Card]:
        """Draw from the draw pile, or None when both piles are exhausted."""
        try:
            return self.deck.draw()
        except ResourceExhaustion:
            self.add_log("No card available to draw")
            logger.warning(f"Deck exhausted in round {self.round_number}")
            return None

    def _set_turn_by_index(self, index: int) -> None:
        """Hand the turn to the player at `index` and reset draw flags."""
        if not self.players:
            self.turn_player_id = None
            return
        index %= len(self.players)
        self.turn_player_id = self.players[index].id
        for player in self.players:
            player.has_drawn = False

    def advance_turn(self) -> None:
        """
        Pass the turn 1 + pending_skips seats forward.

        pending_skips is consumed by this advance. Two-player rooms are not
        clamped: an odd number of skips hands the turn back to the dropper.
        """
        idx = self.index_of(self.turn_player_id)
        if idx is None:
            idx = 0

        steps = 1 + self.pending_skips
        self.pending_skips = 0

        next_idx = (idx + steps) % len(self.players)
        self.add_log(f"Turn: {self.players[idx].name} → {self.players[next_idx].name}")
        self._set_turn_by_index(next_idx)

    def _pass_turn_to_connected(self, start_idx: int) -> None:
        """Give the turn to the first connected player from `start_idx` on."""
        n = len(self.players)
        for offset in range(n):
            candidate = self.players[(start_idx + offset) % n]
            if candidate.connected:
                self._set_turn_by_index(start_idx + offset)
                break
        else:
            self._set_turn_by_index(start_idx)
        self.add_log(f"Turn passes to {self.current_player().name}")

    def _end_round(self, closer_id: str, auto_close: bool = False) -> RoundResult:
        """
        Settle the round, add round points to cumulative scores, and
        return to the lobby with hands and piles cleared.
        """
        totals = {p.id: p.hand_total() for p in self.players}
        result = settle_round(
            totals,
            closer_id,
            round_number=self.round_number,
            auto_close=auto_close,
        )

        for player in self.players:
            player.score += result.points[player.id]

        closer = self.get_player(closer_id)
        if result.closer_correct:
            self.add_log(f"{closer.name} closed correctly with {totals[closer_id]} pts")
        else:
            self.add_log(
                f"{closer.name} closed wrong with {totals[closer_id]} pts "
                f"(+{result.points[closer_id]})"
            )
        logger.info(
            f"Round {self.round_number} settled: closer={closer_id} "
            f"correct={result.closer_correct} points={result.points}"
        )

        self.last_round = result
        self._clear_round()
        return result

    # -------------------------------------------------------------------------
    # Invariants
    # -------------------------------------------------------------------------

    def card_count(self) -> int:
        """Cards across both piles and every hand."""
        in_piles = self.deck.card_count() if self.deck else 0
        return in_piles + sum(len(p.hand) for p in self.players)

    def check_invariants(self) -> None:
        """
        Verify card conservation during a round.

        Raises:
            InvariantViolation: If the round doesn't hold exactly the full
                deck, or a card id appears twice.
        """
        if self.phase != RoundPhase.IN_ROUND:
            return

        total = self.card_count()
        if total != FULL_DECK_SIZE:
            raise InvariantViolation(f"Round holds {total} cards, expected {FULL_DECK_SIZE}")

        ids = [c.id for c in self.deck.draw_pile]
        ids += [c.id for c in self.deck.discard_pile]
        for player in self.players:
            ids += [c.id for c in player.hand]
        duplicates = [card_id for card_id, n in Counter(ids).items() if n > 1]
        if duplicates:
            raise InvariantViolation(f"Duplicate card ids in play: {duplicates}")

    # -------------------------------------------------------------------------
    # State Queries
    # -------------------------------------------------------------------------

    def get_state(self, for_player_id: str) -> dict:
        """
        Get the round state as seen by one player.

        Only the recipient's own hand is included; every other player is
        represented by hand size alone.

        Args:
            for_player_id: The player who will receive this state.

        Returns:
            Dict suitable for JSON serialization.
        """
        me = self.get_player(for_player_id)
        open_card = self.deck.open_card if self.deck else None
        turn_phase = self.turn_phase

        matching = 0
        if me and open_card:
            matching = sum(1 for c in me.hand if c.rank == open_card.rank)

        players_data = []
        for player in self.players:
            is_self = player.id == for_player_id
            players_data.append({
                "id": player.id,
                "name": player.name,
                "score": player.score,
                "hand": [c.to_dict() for c in player.hand] if is_self else [],
                "handSize": len(player.hand),
                "handTotal": player.hand_total() if is_self else None,
                "hasDrawn": player.has_drawn,
                "connected": player.connected,
            })

        return {
            "phase": self.phase.value,
            "roundNumber": self.round_number,
            "turnPlayerId": self.turn_player_id,
            "turnPhase": turn_phase.value if turn_phase else None,
            "discardTop": open_card.to_dict() if open_card else None,
            "drawPileCount": len(self.deck.draw_pile) if self.deck else 0,
            "discardPileCount": len(self.deck.discard_pile) if self.deck else 0,
            "pendingDraw": self.pending_draw,
            "pendingSkips": self.pending_skips,
            "hasDrawn": me.has_drawn if me else False,
            "matchingOpenCardCount": matching,
            "players": players_data,
            "log": list(self.log)[-SNAPSHOT_LOG_TAIL:],
            "lastRound": self.last_round.to_dict() if self.last_round else None,
        }
