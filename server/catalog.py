"""
Card catalog for the Pears card game.

The catalog is the immutable source every room's decks are built from:
an ordered tuple of red (noun) cards and an ordered tuple of green
(adjective) cards. Card ids are derived from catalog position, so the
same data files always produce the same ids ("r-0", "g-12", ...).

Data files are plain JSON lists of {"text": ..., "tags": [...]} objects:

    data/red_cards.json
    data/green_cards.json
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from constants import CARD_ID_PREFIXES, GREEN, RED

logger = logging.getLogger(__name__)

RED_CARDS_FILE = "red_cards.json"
GREEN_CARDS_FILE = "green_cards.json"


class CardTemplate(BaseModel):
    """One entry of a card data file, as authored."""

    text: str
    tags: list[str] = Field(default_factory=list)

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("card text must not be blank")
        return value

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, value: list[str]) -> list[str]:
        return [tag.strip() for tag in value if tag.strip()]


_template_list = TypeAdapter(list[CardTemplate])


@dataclass(frozen=True)
class Card:
    """
    A single playable card.

    Attributes:
        id: Stable id derived from catalog position ("r-3", "g-0").
        text: Text printed on the card.
        tags: Free-form content tags from the data file.
    """

    id: str
    text: str
    tags: frozenset[str] = field(default_factory=frozenset)

    def to_client_dict(self) -> dict:
        """Public card data. Tags stay server-side."""
        return {"id": self.id, "text": self.text}


def build_cards(color: str, templates: Iterable[Union[CardTemplate, dict]]) -> tuple[Card, ...]:
    """Turn templates into Cards with positional ids for the given color."""
    prefix = CARD_ID_PREFIXES[color]
    cards = []
    for index, template in enumerate(templates):
        if isinstance(template, dict):
            template = CardTemplate.model_validate(template)
        cards.append(Card(id=f"{prefix}-{index}", text=template.text, tags=frozenset(template.tags)))
    return tuple(cards)


@dataclass(frozen=True)
class CardCatalog:
    """Read-only red and green card pools shared by every room."""

    red: tuple[Card, ...] = ()
    green: tuple[Card, ...] = ()

    @classmethod
    def from_templates(
        cls,
        red: Iterable[Union[CardTemplate, dict]],
        green: Iterable[Union[CardTemplate, dict]],
    ) -> "CardCatalog":
        return cls(red=build_cards(RED, red), green=build_cards(GREEN, green))

    @classmethod
    def from_texts(cls, red: Iterable[str], green: Iterable[str]) -> "CardCatalog":
        """Convenience constructor for tests and quick setups."""
        return cls.from_templates(
            [CardTemplate(text=t) for t in red],
            [CardTemplate(text=t) for t in green],
        )

    def cards(self, color: str) -> tuple[Card, ...]:
        return self.red if color == RED else self.green


def _read_templates(path: Path) -> list[CardTemplate]:
    with path.open(encoding="utf-8") as f:
        raw = json.load(f)
    return _template_list.validate_python(raw)


def load_catalog(data_dir: Union[str, Path]) -> CardCatalog:
    """
    Load and validate the card catalog from a data directory.

    Args:
        data_dir: Directory containing red_cards.json and green_cards.json.

    Returns:
        The loaded CardCatalog.

    Raises:
        FileNotFoundError: If either data file is missing.
        pydantic.ValidationError: If an entry is malformed.
    """
    data_dir = Path(data_dir)
    catalog = CardCatalog.from_templates(
        _read_templates(data_dir / RED_CARDS_FILE),
        _read_templates(data_dir / GREEN_CARDS_FILE),
    )
    logger.info(
        f"Card catalog loaded: {len(catalog.red)} red, {len(catalog.green)} green",
        extra={"data_dir": str(data_dir)},
    )
    return catalog
