"""
Draw and discard piles for one card color.

A room holds two Decks (red and green). Cards leave the draw pile into
hands, submissions or the table, and come back through the discard pile,
which is reshuffled into a fresh draw pile whenever the draw pile runs dry.
"""

import random
from typing import Iterable, Optional, Sequence, TypeVar

from catalog import Card

T = TypeVar("T")


def shuffle(cards: Iterable[T], rng: Optional[random.Random] = None) -> list[T]:
    """
    Return a uniformly shuffled copy of ``cards``.

    random.shuffle is a Fisher-Yates shuffle; good enough for party play,
    not for anything cryptographic.
    """
    result = list(cards)
    (rng or random).shuffle(result)
    return result


class Deck:
    """
    A draw pile plus a discard pile.

    The top of the draw pile is the end of the list. Discard order is
    irrelevant since the pile is reshuffled before it is drawn from again.

    For reproducible games, pass a seeded random.Random as ``rng``.
    """

    def __init__(self, cards: Sequence[Card] = (), rng: Optional[random.Random] = None) -> None:
        self.rng = rng or random.Random()
        self.draw_pile: list[Card] = []
        self.discard_pile: list[Card] = []
        self.reset(cards)

    def reset(self, cards: Sequence[Card]) -> None:
        """Rebuild the draw pile from ``cards``, shuffled, with an empty discard."""
        self.draw_pile = shuffle(cards, self.rng)
        self.discard_pile = []

    def _refill_from_discard(self) -> None:
        if self.draw_pile or not self.discard_pile:
            return
        recycled = self.discard_pile
        self.discard_pile = []
        self.draw_pile = shuffle(recycled, self.rng)

    def draw(self) -> Optional[Card]:
        """
        Draw the top card.

        Returns:
            The drawn Card, or None if both draw and discard piles are empty.
        """
        self._refill_from_discard()
        if self.draw_pile:
            return self.draw_pile.pop()
        return None

    def discard(self, cards: Iterable[Card]) -> None:
        """Put cards onto the discard pile."""
        self.discard_pile.extend(cards)

    def all_cards(self) -> list[Card]:
        """Every card currently held by this deck (both piles)."""
        return self.draw_pile + self.discard_pile
