# tests/test_rules.py
import random

import pytest

from baloot_arena.cards import Card, Deck, GameType, Suit
from baloot_arena.rules import (
    MalformedTrickError,
    Play,
    TrumpContext,
    beats,
    current_winner,
    legal_cards,
    partner_of,
    team_of,
    trick_points,
)

HOKUM_HEARTS = TrumpContext.hokum(Suit.HEARTS)
SUN = TrumpContext.sun()


def C(card_id: str) -> Card:
    return Card.from_id(card_id)


def _trick(*card_ids, first_player=0):
    return [Play((first_player + i) % 4, C(cid)) for i, cid in enumerate(card_ids)]


def test_trump_context_validation():
    with pytest.raises(ValueError):
        TrumpContext(GameType.HOKUM, None)
    with pytest.raises(ValueError):
        TrumpContext(GameType.SUN, Suit.CLUBS)
    assert HOKUM_HEARTS.is_trump(C("7-hearts"))
    assert not SUN.is_trump(C("7-hearts"))


def test_scenario_sole_trump_wins_in_hokum():
    plays = _trick("7-clubs", "A-clubs", "J-hearts", "9-clubs")
    assert current_winner(plays, HOKUM_HEARTS).player_index == 2


def test_scenario_highest_led_suit_wins_in_sun():
    plays = _trick("7-clubs", "A-clubs", "J-hearts", "9-clubs")
    assert current_winner(plays, SUN).player_index == 1


def test_single_play_is_its_own_winner():
    plays = _trick("8-diamonds", first_player=3)
    assert current_winner(plays, SUN) is plays[0]


def test_trump_ranking_inside_trick():
    plays = _trick("A-hearts", "9-hearts", "10-hearts", "J-hearts")
    assert current_winner(plays, HOKUM_HEARTS).player_index == 3
    plays = _trick("A-hearts", "9-hearts", "10-hearts")
    assert current_winner(plays, HOKUM_HEARTS).player_index == 1


def test_trump_dominance_for_every_pair():
    deck = Deck().cards
    trumps = [c for c in deck if c.suit == Suit.HEARTS]
    others = [c for c in deck if c.suit != Suit.HEARTS]
    for trump in trumps:
        for other in others:
            for led in Suit:
                assert beats(trump, other, led, HOKUM_HEARTS)
                assert not beats(other, trump, led, HOKUM_HEARTS)


def test_off_suit_cards_never_beat_each_other():
    deck = Deck().cards
    for a in deck:
        for b in deck:
            if a.suit == Suit.CLUBS or b.suit == Suit.CLUBS or a.suit == b.suit:
                continue
            assert not beats(a, b, Suit.CLUBS, SUN)


def test_led_suit_beats_off_suit_in_sun():
    assert beats(C("7-clubs"), C("A-spades"), Suit.CLUBS, SUN)
    assert not beats(C("A-spades"), C("7-clubs"), Suit.CLUBS, SUN)


def test_winner_is_never_beaten_by_another_play():
    rng = random.Random(5)
    for _ in range(300):
        cards = rng.sample(Deck().cards, 4)
        ctx = rng.choice([SUN, TrumpContext.hokum(rng.choice(list(Suit)))])
        plays = [Play(i, c) for i, c in enumerate(cards)]
        winner = current_winner(plays, ctx)
        led = plays[0].card.suit
        for play in plays:
            if play is not winner:
                assert not beats(play.card, winner.card, led, ctx)


def test_malformed_tricks_are_rejected():
    with pytest.raises(MalformedTrickError):
        current_winner([], SUN)
    with pytest.raises(MalformedTrickError, match="repeats a card"):
        current_winner([Play(0, C("7-clubs")), Play(1, C("7-clubs"))], SUN)
    with pytest.raises(MalformedTrickError, match="repeats a player"):
        current_winner([Play(0, C("7-clubs")), Play(0, C("8-clubs"))], SUN)
    five = _trick("7-clubs", "8-clubs", "9-clubs", "10-clubs", "J-clubs")
    with pytest.raises(MalformedTrickError, match="at most 4"):
        current_winner(five, SUN)


def test_trick_points_over_full_deck():
    deck = Deck().cards
    assert trick_points(deck, HOKUM_HEARTS) == 62 + 3 * 30
    assert trick_points(deck, SUN) == 4 * 30


def test_seat_helpers():
    assert partner_of(0) == 2
    assert partner_of(3) == 1
    assert team_of(2) == 0
    assert team_of(3) == 1


def test_legal_cards_lead_is_free():
    hand = [C("7-clubs"), C("J-hearts")]
    assert legal_cards(hand, [], HOKUM_HEARTS, 0) == hand


def test_legal_cards_must_follow_suit():
    hand = [C("A-clubs"), C("7-clubs"), C("J-hearts")]
    plays = _trick("10-clubs")
    assert legal_cards(hand, plays, HOKUM_HEARTS, 1) == [C("A-clubs"), C("7-clubs")]


def test_legal_cards_trump_lead_forces_over_trump():
    plays = _trick("9-hearts")
    hand = [C("J-hearts"), C("A-hearts"), C("7-spades")]
    assert legal_cards(hand, plays, HOKUM_HEARTS, 1) == [C("J-hearts")]
    hand = [C("A-hearts"), C("7-hearts"), C("7-spades")]
    assert legal_cards(hand, plays, HOKUM_HEARTS, 1) == [C("A-hearts"), C("7-hearts")]


def test_legal_cards_void_must_trump():
    plays = _trick("A-clubs")
    hand = [C("7-hearts"), C("K-spades")]
    assert legal_cards(hand, plays, HOKUM_HEARTS, 1) == [C("7-hearts")]


def test_legal_cards_void_with_partner_winning_is_free():
    plays = _trick("A-clubs", "7-clubs")
    hand = [C("7-hearts"), C("K-spades")]
    assert legal_cards(hand, plays, HOKUM_HEARTS, 2) == hand


def test_legal_cards_void_must_over_trump_when_able():
    plays = _trick("A-clubs", "9-hearts")
    hand = [C("J-hearts"), C("7-hearts"), C("K-spades")]
    assert legal_cards(hand, plays, HOKUM_HEARTS, 2) == [C("J-hearts")]
    hand = [C("7-hearts"), C("K-spades")]
    assert legal_cards(hand, plays, HOKUM_HEARTS, 2) == [C("7-hearts")]


def test_legal_cards_void_in_sun_is_free():
    plays = _trick("A-clubs")
    hand = [C("7-hearts"), C("K-spades")]
    assert legal_cards(hand, plays, SUN, 1) == hand
