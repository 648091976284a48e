import math
from typing import Dict, Iterable, List, Mapping

from peerrank.models import ABSTAINED, Participant, RANKS

MAX_VOTE_SHARE = 0.2
MAX_VOTES_CAP = 5

# (tier, minimum percent of the top vote count); D is anything above zero
RANK_THRESHOLDS = (('A', 67), ('B', 33), ('C', 24))
RANKED_TIERS = RANKS[:-1]


def max_votes(participant_count: int) -> int:
    """How many targets a voter may pick: 20% of the game, at least 1, at most 5."""
    return min(MAX_VOTES_CAP, max(1, math.ceil(participant_count * MAX_VOTE_SHARE)))


def tier_for(vote_count: int, top_vote_count: int) -> str:
    if vote_count <= 0 or top_vote_count <= 0:
        return 'F'
    # vote_count / top * 100 >= threshold, kept in integers
    for tier, threshold in RANK_THRESHOLDS:
        if vote_count * 100 >= threshold * top_vote_count:
            return tier
    return 'D'


def close_gaps(ranks: Mapping[int, str]) -> Dict[int, str]:
    """Pull populated tiers up so no tier above them is left empty.

    The populated non-F tiers, in order, are mapped onto A, B, C, ...
    F stays F.
    """
    present = set(ranks.values())
    populated = [t for t in RANKED_TIERS if t in present]
    remap = {tier: RANKED_TIERS[i] for i, tier in enumerate(populated)}
    return {pid: remap.get(rank, rank) for pid, rank in ranks.items()}


def compute_ranks(vote_counts: Mapping[int, int], abstained: Iterable[int] = ()) -> Dict[int, str]:
    """Map participant id -> rank from received vote counts.

    Zero votes and abstention both rank F. Everyone else is ranked by their
    share of the highest vote count in the game, then gaps are closed.
    """
    abstained = set(abstained)
    top = max(vote_counts.values(), default=0)
    initial = {
        pid: 'F' if pid in abstained else tier_for(count, top)
        for pid, count in vote_counts.items()
    }
    return close_gaps(initial)


def rank_participants(participants: List[Participant]) -> Dict[int, str]:
    """Assign and set the final rank on each participant; returns id -> rank."""
    ranks = compute_ranks(
        {p.id: int(p.vote_count or 0) for p in participants},
        abstained=[p.id for p in participants if p.status == ABSTAINED],
    )
    for p in participants:
        p.rank = ranks[p.id]
    return ranks
