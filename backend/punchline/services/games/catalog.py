"""Read-only access to deck and card definitions.

Published decks never change, so each deck is loaded once and kept in a
per-catalog cache. The default loader reads the ``deck`` and ``card``
tables; tests and tools can pass any callable with the same contract.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .errors import NotFound


class CardType(str, Enum):
    PROMPT = 'prompt'
    ANSWER = 'answer'


@dataclass(frozen=True)
class DeckInfo:
    id: str
    name: str
    description: Optional[str] = None
    language: str = 'en'
    is_official: bool = False
    content_warning: bool = False

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'language': self.language,
            'is_official': self.is_official,
            'content_warning': self.content_warning,
        }


@dataclass(frozen=True)
class CardView:
    id: str
    deck_id: str
    card_type: CardType
    text: str
    pick: Optional[int] = None
    content_warning: bool = False

    def to_dict(self):
        data = {
            'id': self.id,
            'type': self.card_type.value,
            'text': self.text,
            'content_warning': self.content_warning,
        }
        if self.card_type == CardType.PROMPT:
            data['pick'] = self.pick or 1
        return data


DeckLoader = Callable[[str], Optional[Tuple[DeckInfo, List[CardView]]]]


class _LoadedDeck:
    def __init__(self, info: DeckInfo, cards: List[CardView]):
        self.info = info
        self.cards = cards
        self.by_id: Dict[str, CardView] = {c.id: c for c in cards}


def load_deck_from_db(deck_id: str) -> Optional[Tuple[DeckInfo, List[CardView]]]:
    from punchline import db
    from punchline.models import Card, Deck

    deck = db.session.get(Deck, deck_id)
    if deck is None:
        return None
    info = DeckInfo(
        id=deck.id,
        name=deck.name,
        description=deck.description,
        language=deck.language,
        is_official=bool(deck.is_official),
        content_warning=bool(deck.content_warning),
    )
    rows = Card.query.filter_by(deck_id=deck_id).order_by(Card.position, Card.id).all()
    cards = [
        CardView(
            id=row.id,
            deck_id=row.deck_id,
            card_type=CardType(row.card_type),
            text=row.text,
            pick=(row.pick or 1) if row.card_type == CardType.PROMPT.value else None,
            content_warning=bool(row.content_warning),
        )
        for row in rows
    ]
    return info, cards


def list_decks_from_db() -> List[DeckInfo]:
    from punchline.models import Deck

    return [
        DeckInfo(
            id=d.id,
            name=d.name,
            description=d.description,
            language=d.language,
            is_official=bool(d.is_official),
            content_warning=bool(d.content_warning),
        )
        for d in Deck.query.all()
    ]


class CardCatalog:
    def __init__(self, loader: DeckLoader = load_deck_from_db,
                 deck_lister: Callable[[], List[DeckInfo]] = list_decks_from_db):
        self._loader = loader
        self._deck_lister = deck_lister
        self._cache: Dict[str, _LoadedDeck] = {}

    def _deck(self, deck_id: str) -> _LoadedDeck:
        loaded = self._cache.get(deck_id)
        if loaded is None:
            result = self._loader(deck_id)
            if result is None:
                raise NotFound(f'Deck {deck_id} not found.')
            loaded = _LoadedDeck(*result)
            self._cache[deck_id] = loaded
        return loaded

    def invalidate(self, deck_id: Optional[str] = None) -> None:
        if deck_id is None:
            self._cache.clear()
        else:
            self._cache.pop(deck_id, None)

    def get_deck(self, deck_id: str) -> DeckInfo:
        return self._deck(deck_id).info

    def get_card(self, deck_id: str, card_id: str) -> CardView:
        card = self._deck(deck_id).by_id.get(card_id)
        if card is None:
            raise NotFound(f'Card {card_id} not found in deck {deck_id}.')
        return card

    def get_cards(self, deck_id: str, card_ids: Sequence[str]) -> List[CardView]:
        """Resolve a batch of ids, preserving the input order."""
        return [self.get_card(deck_id, cid) for cid in card_ids]

    def card_ids(self, deck_id: str, card_type: CardType, family_mode: bool = False) -> List[str]:
        return [
            c.id
            for c in self._deck(deck_id).cards
            if c.card_type == card_type and not (family_mode and c.content_warning)
        ]

    def list_decks(self) -> List[DeckInfo]:
        decks = list(self._deck_lister())
        # Decks without a content warning first, then by name
        decks.sort(key=lambda d: (d.content_warning, d.name.lower()))
        return decks
