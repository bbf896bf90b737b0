"""Shuffled prompt/answer pools and draw-without-replacement.

Cards are consumed from the front of each sequence and never put back, so
an id can be handed out at most once per game.
"""

import random
from typing import List, Optional, Sequence

from .catalog import CardCatalog, CardType
from .errors import DeckExhausted
from .state import DeckState


def shuffled(ids: Sequence[str], rng: Optional[random.Random] = None) -> List[str]:
    """Return a uniformly shuffled copy (Fisher-Yates, via ``Random.shuffle``)."""
    pool = list(ids)
    (rng or random).shuffle(pool)
    return pool


def initialize(catalog: CardCatalog, deck_id: str, rng: Optional[random.Random] = None,
               family_mode: bool = False) -> DeckState:
    prompts = catalog.card_ids(deck_id, CardType.PROMPT, family_mode=family_mode)
    answers = catalog.card_ids(deck_id, CardType.ANSWER, family_mode=family_mode)
    return DeckState(
        remaining_prompt_ids=shuffled(prompts, rng),
        remaining_answer_ids=shuffled(answers, rng),
        played_prompt_ids=[],
    )


def draw(pool: List[str], count: int) -> List[str]:
    """Remove and return the first ``count`` ids of ``pool``."""
    if count < 0:
        raise ValueError(f'Cannot draw {count} cards')
    if count > len(pool):
        raise DeckExhausted(f'Cannot draw {count} cards; only {len(pool)} left in the deck.')
    drawn = pool[:count]
    del pool[:count]
    return drawn


def draw_answers(deck: DeckState, count: int) -> List[str]:
    return draw(deck.remaining_answer_ids, count)


def draw_prompt(deck: DeckState) -> str:
    played = set(deck.played_prompt_ids)
    while deck.remaining_prompt_ids:
        card_id = draw(deck.remaining_prompt_ids, 1)[0]
        if card_id not in played:
            deck.played_prompt_ids.append(card_id)
            return card_id
    raise DeckExhausted('No prompt cards left in the deck.')
