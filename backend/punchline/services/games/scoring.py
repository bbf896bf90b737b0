from typing import Dict, List

from .state import GameState, Player, Round


def award_point(players: Dict[str, Player], winner_id: str) -> None:
    """+1 to the player whose submission the judge picked."""
    players[winner_id].score += 1


def final_scores(game: GameState) -> Dict[str, int]:
    return {pid: p.score for pid, p in game.players.items()}


def leaders(game: GameState) -> List[str]:
    """Player ids sharing the top score, in seat order. Empty if nobody scored."""
    top = max((p.score for p in game.players.values()), default=0)
    if top == 0:
        return []
    return [p.id for p in game.seated_players() if p.score == top]


def round_summary(rnd: Round) -> dict:
    return {
        'round': rnd.round_number,
        'judge_id': rnd.judge_id,
        'prompt_id': rnd.prompt.card_id,
        'winner_id': rnd.winner_id,
        'outcome': rnd.outcome,
        'submitters': sorted(rnd.submissions),
    }
