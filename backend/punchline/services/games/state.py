"""Game aggregate: enums and document shapes.

This is the only place the status and phase names are declared. The
persisted document (``GameState.to_dict()``) is also the shape clients see,
minus the redactions applied by ``public_view``.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


MIN_PLAYERS = 3
MAX_PLAYERS = 10


class GameStatus(str, Enum):
    LOBBY = 'lobby'
    PLAYING = 'playing'
    ENDED = 'ended'
    CANCELLED = 'cancelled'


class PlayerStatus(str, Enum):
    JOINED = 'joined'
    READY = 'ready'
    PLAYING = 'playing'
    SPECTATING = 'spectating'
    DISCONNECTED = 'disconnected'


class RoundPhase(str, Enum):
    DEALING = 'dealing'
    SUBMITTING = 'submitting'
    JUDGING = 'judging'
    REVEALING = 'revealing'
    COMPLETE = 'complete'

    @property
    def rank(self) -> int:
        return _PHASE_ORDER.index(self)


_PHASE_ORDER = list(RoundPhase)


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


@dataclass
class GameSettings:
    deck_id: str
    player_limit: int = 8
    min_players: int = MIN_PLAYERS
    rounds_per_player: int = 1
    cards_per_player: int = 7
    submission_time_limit: Optional[int] = None
    judging_time_limit: Optional[int] = None
    family_mode: bool = False

    def __post_init__(self):
        self.player_limit = _clamp(int(self.player_limit), MIN_PLAYERS, MAX_PLAYERS)
        self.min_players = _clamp(int(self.min_players), MIN_PLAYERS, self.player_limit)
        self.rounds_per_player = max(1, int(self.rounds_per_player))
        self.cards_per_player = max(1, int(self.cards_per_player))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'deck_id': self.deck_id,
            'player_limit': self.player_limit,
            'min_players': self.min_players,
            'rounds_per_player': self.rounds_per_player,
            'cards_per_player': self.cards_per_player,
            'submission_time_limit': self.submission_time_limit,
            'judging_time_limit': self.judging_time_limit,
            'family_mode': self.family_mode,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GameSettings':
        return cls(**data)


@dataclass
class Player:
    id: str
    display_name: str
    seat: int
    status: PlayerStatus = PlayerStatus.JOINED
    is_host: bool = False
    score: int = 0
    hand: List[str] = field(default_factory=list)
    joined_at: Optional[float] = None
    last_active: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'display_name': self.display_name,
            'seat': self.seat,
            'status': self.status.value,
            'is_host': self.is_host,
            'score': self.score,
            'hand': list(self.hand),
            'joined_at': self.joined_at,
            'last_active': self.last_active,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Player':
        return cls(
            id=data['id'],
            display_name=data['display_name'],
            seat=data['seat'],
            status=PlayerStatus(data['status']),
            is_host=data.get('is_host', False),
            score=data.get('score', 0),
            hand=list(data.get('hand') or []),
            joined_at=data.get('joined_at'),
            last_active=data.get('last_active'),
        )


@dataclass
class PromptRef:
    card_id: str
    pick: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {'card_id': self.card_id, 'pick': self.pick}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PromptRef':
        return cls(card_id=data['card_id'], pick=data.get('pick', 1))


@dataclass
class Submission:
    player_id: str
    card_ids: List[str]
    submitted_at: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'player_id': self.player_id,
            'card_ids': list(self.card_ids),
            'submitted_at': self.submitted_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Submission':
        return cls(
            player_id=data['player_id'],
            card_ids=list(data['card_ids']),
            submitted_at=data['submitted_at'],
        )


@dataclass
class Round:
    round_number: int
    judge_id: str
    prompt: PromptRef
    phase: RoundPhase = RoundPhase.DEALING
    submissions: Dict[str, Submission] = field(default_factory=dict)
    winner_id: Optional[str] = None
    outcome: Optional[str] = None
    started_at: Optional[float] = None
    ended_at: Optional[float] = None
    submission_deadline: Optional[float] = None
    judging_deadline: Optional[float] = None
    phase_history: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return self.phase == RoundPhase.COMPLETE

    def to_dict(self) -> Dict[str, Any]:
        return {
            'round_number': self.round_number,
            'judge_id': self.judge_id,
            'prompt': self.prompt.to_dict(),
            'phase': self.phase.value,
            'submissions': {pid: s.to_dict() for pid, s in self.submissions.items()},
            'winner_id': self.winner_id,
            'outcome': self.outcome,
            'started_at': self.started_at,
            'ended_at': self.ended_at,
            'submission_deadline': self.submission_deadline,
            'judging_deadline': self.judging_deadline,
            'phase_history': [dict(entry) for entry in self.phase_history],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Round':
        return cls(
            round_number=data['round_number'],
            judge_id=data['judge_id'],
            prompt=PromptRef.from_dict(data['prompt']),
            phase=RoundPhase(data['phase']),
            submissions={pid: Submission.from_dict(s) for pid, s in (data.get('submissions') or {}).items()},
            winner_id=data.get('winner_id'),
            outcome=data.get('outcome'),
            started_at=data.get('started_at'),
            ended_at=data.get('ended_at'),
            submission_deadline=data.get('submission_deadline'),
            judging_deadline=data.get('judging_deadline'),
            phase_history=[dict(entry) for entry in data.get('phase_history') or []],
        )


@dataclass
class DeckState:
    remaining_prompt_ids: List[str] = field(default_factory=list)
    remaining_answer_ids: List[str] = field(default_factory=list)
    played_prompt_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'remaining_prompt_ids': list(self.remaining_prompt_ids),
            'remaining_answer_ids': list(self.remaining_answer_ids),
            'played_prompt_ids': list(self.played_prompt_ids),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DeckState':
        return cls(
            remaining_prompt_ids=list(data.get('remaining_prompt_ids') or []),
            remaining_answer_ids=list(data.get('remaining_answer_ids') or []),
            played_prompt_ids=list(data.get('played_prompt_ids') or []),
        )


@dataclass
class GameState:
    id: str
    host_id: str
    settings: GameSettings
    status: GameStatus = GameStatus.LOBBY
    players: Dict[str, Player] = field(default_factory=dict)
    play_order: List[str] = field(default_factory=list)
    current_round: int = 0
    current_judge_id: Optional[str] = None
    rounds: Dict[int, Round] = field(default_factory=dict)
    deck: DeckState = field(default_factory=DeckState)
    audit_log: List[Dict[str, Any]] = field(default_factory=list)
    created_at: Optional[float] = None
    updated_at: Optional[float] = None
    started_at: Optional[float] = None
    ended_at: Optional[float] = None

    @property
    def active_round(self) -> Optional[Round]:
        rnd = self.rounds.get(self.current_round)
        if rnd is None or rnd.is_complete:
            return None
        return rnd

    def seated_players(self) -> List[Player]:
        return sorted(self.players.values(), key=lambda p: p.seat)

    def next_seat(self) -> int:
        return max((p.seat for p in self.players.values()), default=0) + 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'host_id': self.host_id,
            'settings': self.settings.to_dict(),
            'status': self.status.value,
            'players': {pid: p.to_dict() for pid, p in self.players.items()},
            'play_order': list(self.play_order),
            'current_round': self.current_round,
            'current_judge_id': self.current_judge_id,
            # JSON object keys are strings; from_dict converts them back
            'rounds': {str(n): r.to_dict() for n, r in self.rounds.items()},
            'deck': self.deck.to_dict(),
            'audit_log': [dict(entry) for entry in self.audit_log],
            'created_at': self.created_at,
            'updated_at': self.updated_at,
            'started_at': self.started_at,
            'ended_at': self.ended_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GameState':
        return cls(
            id=data['id'],
            host_id=data['host_id'],
            settings=GameSettings.from_dict(data['settings']),
            status=GameStatus(data['status']),
            players={pid: Player.from_dict(p) for pid, p in (data.get('players') or {}).items()},
            play_order=list(data.get('play_order') or []),
            current_round=data.get('current_round') or 0,
            current_judge_id=data.get('current_judge_id'),
            rounds={int(n): Round.from_dict(r) for n, r in (data.get('rounds') or {}).items()},
            deck=DeckState.from_dict(data.get('deck') or {}),
            audit_log=[dict(entry) for entry in data.get('audit_log') or []],
            created_at=data.get('created_at'),
            updated_at=data.get('updated_at'),
            started_at=data.get('started_at'),
            ended_at=data.get('ended_at'),
        )

    def public_view(self, viewer_id: Optional[str] = None) -> Dict[str, Any]:
        """Snapshot for clients: other players' hands and in-flight answers hidden."""
        data = self.to_dict()
        data.pop('deck')
        data['deck'] = {
            'prompts_remaining': len(self.deck.remaining_prompt_ids),
            'answers_remaining': len(self.deck.remaining_answer_ids),
            'prompts_played': len(self.deck.played_prompt_ids),
        }
        for pid, pdata in data['players'].items():
            pdata['hand_size'] = len(pdata['hand'])
            if pid != viewer_id:
                pdata.pop('hand')
        for rdata in data['rounds'].values():
            if rdata['phase'] == RoundPhase.SUBMITTING.value:
                for pid, sub in rdata['submissions'].items():
                    if pid != viewer_id:
                        sub['card_ids'] = []
        return data
