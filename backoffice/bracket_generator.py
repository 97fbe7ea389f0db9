"""
Single-elimination bracket construction.

Only round 1 is filled in. Later rounds are named placeholders; advancing
winners is done elsewhere. Seeding is a uniform shuffle, so two calls on the
same entrants give different pairings unless a seeded random source is passed.
"""
import random
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Sequence, Tuple


class MatchStatus(str, Enum):
    PENDING = "PENDING"
    WALKOVER = "WALKOVER"


@dataclass(frozen=True)
class Entrant:
    player_id: str
    player_name: Optional[str] = None


@dataclass(frozen=True)
class BracketMatch:
    match_number: int
    player1: Entrant
    player2: Optional[Entrant] = None
    status: MatchStatus = MatchStatus.PENDING
    winner: Optional[Entrant] = None
    score: Optional[str] = None

    @property
    def is_walkover(self) -> bool:
        return self.status == MatchStatus.WALKOVER

    def to_dict(self) -> dict:
        return {
            'match_number': self.match_number,
            'player1_id': self.player1.player_id,
            'player1_name': self.player1.player_name,
            'player2_id': self.player2.player_id if self.player2 else None,
            'player2_name': self.player2.player_name if self.player2 else None,
            'winner_id': self.winner.player_id if self.winner else None,
            'winner_name': self.winner.player_name if self.winner else None,
            'score': self.score,
            'status': self.status.value,
        }


@dataclass(frozen=True)
class BracketRound:
    round_number: int
    round_name: str
    matches: Tuple[BracketMatch, ...] = ()

    def to_dict(self) -> dict:
        return {
            'round_number': self.round_number,
            'round_name': self.round_name,
            'matches': [m.to_dict() for m in self.matches],
        }


@dataclass(frozen=True)
class Bracket:
    tournament_id: str
    tournament_name: str
    total_rounds: int
    rounds: Tuple[BracketRound, ...]
    generated_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def first_round(self) -> BracketRound:
        return self.rounds[0]

    def to_dict(self) -> dict:
        return {
            'tournament_id': self.tournament_id,
            'tournament_name': self.tournament_name,
            'total_rounds': self.total_rounds,
            'rounds': [r.to_dict() for r in self.rounds],
            'generated_at': self.generated_at.isoformat(),
        }


def total_rounds_for(entrant_count: int) -> int:
    """ceil(log2(n)), with a single entrant still getting one round."""
    if entrant_count < 1:
        raise ValueError("A bracket needs at least one entrant")
    return max(1, (entrant_count - 1).bit_length())


def round_name(round_number: int, total_rounds: int) -> str:
    rounds_from_end = total_rounds - round_number
    if rounds_from_end == 0:
        return "Final"
    if rounds_from_end == 1:
        return "Semi-Final"
    if rounds_from_end == 2:
        return "Quarter-Final"
    return f"Round {round_number}"


class BracketGenerator:
    def __init__(self, rng: random.Random = None):
        self.rng = rng or random.Random()

    def seed(self, entrants: Sequence[Entrant]) -> List[Entrant]:
        seeded = list(entrants)
        self.rng.shuffle(seeded)
        return seeded

    def pair(self, seeded: Sequence[Entrant]) -> Tuple[BracketMatch, ...]:
        matches = []
        for i in range(0, len(seeded), 2):
            match_number = len(matches) + 1
            if i + 1 < len(seeded):
                matches.append(BracketMatch(
                    match_number=match_number,
                    player1=seeded[i],
                    player2=seeded[i + 1],
                ))
            else:
                # Odd entrant out advances unopposed
                matches.append(BracketMatch(
                    match_number=match_number,
                    player1=seeded[i],
                    status=MatchStatus.WALKOVER,
                    winner=seeded[i],
                ))
        return tuple(matches)

    def generate(self, tournament_id: str, tournament_name: str, entrants: Sequence[Entrant]) -> Bracket:
        total_rounds = total_rounds_for(len(entrants))

        rounds = [BracketRound(
            round_number=1,
            round_name=round_name(1, total_rounds),
            matches=self.pair(self.seed(entrants)),
        )]
        for round_number in range(2, total_rounds + 1):
            rounds.append(BracketRound(
                round_number=round_number,
                round_name=round_name(round_number, total_rounds),
            ))

        return Bracket(
            tournament_id=tournament_id,
            tournament_name=tournament_name,
            total_rounds=total_rounds,
            rounds=tuple(rounds),
        )
