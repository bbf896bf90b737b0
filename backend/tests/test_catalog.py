import pytest

from punchline import db
from punchline.models import Card
from punchline.services.games.catalog import CardCatalog, CardType, DeckInfo
from punchline.services.games.errors import NotFound
from punchline.services.games.gameplay import CATALOG_EXTENSION


def test_unknown_deck_and_card_are_not_found(make_catalog):
    catalog = make_catalog()
    with pytest.raises(NotFound):
        catalog.get_deck('missing')
    with pytest.raises(NotFound):
        catalog.get_card('mem', 'mem-a999')


def test_get_cards_preserves_request_order(make_catalog):
    catalog = make_catalog()
    cards = catalog.get_cards('mem', ['mem-a005', 'mem-p001', 'mem-a002'])
    assert [c.id for c in cards] == ['mem-a005', 'mem-p001', 'mem-a002']
    assert cards[1].card_type == CardType.PROMPT
    assert cards[1].to_dict()['pick'] == 1
    assert 'pick' not in cards[0].to_dict()


def test_card_ids_respects_family_mode(make_catalog):
    catalog = make_catalog(answers=10, warning_answers=3)
    assert len(catalog.card_ids('mem', CardType.ANSWER)) == 10
    assert len(catalog.card_ids('mem', CardType.ANSWER, family_mode=True)) == 7


def test_decks_are_loaded_once():
    calls = []

    def loader(deck_id):
        calls.append(deck_id)
        return DeckInfo(id=deck_id, name='Once'), []

    catalog = CardCatalog(loader=loader, deck_lister=lambda: [])
    catalog.get_deck('d1')
    catalog.get_deck('d1')
    assert calls == ['d1']
    catalog.invalidate('d1')
    catalog.get_deck('d1')
    assert calls == ['d1', 'd1']


def test_list_decks_puts_flagged_decks_last():
    decks = [
        DeckInfo(id='x', name='zebra'),
        DeckInfo(id='y', name='After Dark', content_warning=True),
        DeckInfo(id='z', name='Apples'),
    ]
    catalog = CardCatalog(loader=lambda _id: None, deck_lister=lambda: decks)
    assert [d.id for d in catalog.list_decks()] == ['z', 'x', 'y']


def test_database_loader_reads_seeded_deck(app_ctx, seed_deck):
    seed_deck(app_ctx, deck_id='party', prompts=3, answers=5, picks=[1, 2, 3])
    catalog = app_ctx.extensions[CATALOG_EXTENSION]
    deck = catalog.get_deck('party')
    assert deck.name == 'Party Deck'
    assert catalog.get_card('party', 'party-p002').pick == 3
    assert catalog.get_card('party', 'party-a004').text == 'Answer 4'
    assert catalog.card_ids('party', CardType.PROMPT) == ['party-p000', 'party-p001', 'party-p002']
    assert [d.id for d in catalog.list_decks()] == ['party']


def test_database_loader_is_cached_until_invalidated(app_ctx, seed_deck):
    seed_deck(app_ctx, deck_id='party', prompts=1, answers=2)
    catalog = app_ctx.extensions[CATALOG_EXTENSION]
    assert len(catalog.card_ids('party', CardType.ANSWER)) == 2

    db.session.add(Card(id='party-extra', deck_id='party', card_type='answer', text='Late addition', position=99))
    db.session.commit()
    assert len(catalog.card_ids('party', CardType.ANSWER)) == 2
    catalog.invalidate('party')
    assert catalog.card_ids('party', CardType.ANSWER)[-1] == 'party-extra'
