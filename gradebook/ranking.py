"""
Class positions and percentiles.

Uses standard competition ranking: tied scores share a position and the next
distinct score skips ahead by the size of the tie (1, 1, 3, ...). The
percentile of a score is the share of entities scoring at or below it.
"""
import math
from collections import namedtuple
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

RankStatistics = namedtuple(
    'RankStatistics',
    ['total', 'top_rank', 'bottom_rank', 'average_score', 'median_score', 'tied_ranks'],
)


@dataclass(frozen=True)
class ScoredEntity:
    id: int
    score: float


@dataclass(frozen=True)
class RankedEntity:
    id: int
    score: float
    rank: int
    percentile: float


def _round2(value):
    return float(Decimal(value).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP))


def _as_scored(entity):
    if isinstance(entity, ScoredEntity):
        return entity
    entity_id, score = entity
    return ScoredEntity(entity_id, score)


def calculate_ranks(entities):
    """
    Rank entities by score, highest first.

    Args:
        entities: Iterable of ScoredEntity or (id, score) pairs.

    Returns:
        list[RankedEntity] sorted by score descending; entities with equal
        scores keep their input order.
    """
    ordered = sorted((_as_scored(e) for e in entities), key=lambda e: e.score, reverse=True)
    total = len(ordered)
    if total == 0:
        return []

    ranked = []
    position = 0
    last_score = None
    for i, entity in enumerate(ordered, 1):
        if i == 1 or entity.score != last_score:
            position = i
            # Everyone from this position down scores <= this score
            at_or_below = total - position + 1
            percentile = _round2(Decimal(100 * at_or_below) / Decimal(total))
        ranked.append(RankedEntity(entity.id, entity.score, position, percentile))
        last_score = entity.score

    return ranked


def calculate_overall_ranks(score_sets):
    """
    Rank entities on their summed scores across several exams.

    Args:
        score_sets: Iterable of per-exam iterables of ScoredEntity or (id, score).
    """
    totals = {}
    for scores in score_sets:
        for entity in scores:
            entity = _as_scored(entity)
            totals.setdefault(entity.id, []).append(entity.score)

    return calculate_ranks(
        ScoredEntity(entity_id, math.fsum(scores)) for entity_id, scores in totals.items()
    )


def calculate_percentile(score, all_scores):
    """Percentage of all_scores at or below score (0 when all_scores is empty)."""
    all_scores = list(all_scores)
    if not all_scores:
        return 0.0
    at_or_below = sum(1 for s in all_scores if s <= score)
    return _round2(Decimal(100 * at_or_below) / Decimal(len(all_scores)))


def rank_statistics(ranked):
    """
    Summarise a ranking produced by calculate_ranks.

    Returns RankStatistics with tied_ranks as [(rank, count), ...] for every
    position shared by more than one entity.
    """
    ranked = list(ranked)
    if not ranked:
        return RankStatistics(0, 0, 0, 0.0, 0.0, [])

    scores = sorted(r.score for r in ranked)
    count = len(scores)
    mid = count // 2
    if count % 2 == 0:
        median = (Decimal(str(scores[mid - 1])) + Decimal(str(scores[mid]))) / 2
    else:
        median = Decimal(str(scores[mid]))
    average = sum(Decimal(str(s)) for s in scores) / count

    rank_counts = {}
    for r in ranked:
        rank_counts[r.rank] = rank_counts.get(r.rank, 0) + 1
    tied = sorted((rank, n) for rank, n in rank_counts.items() if n > 1)

    return RankStatistics(
        total=count,
        top_rank=min(r.rank for r in ranked),
        bottom_rank=max(r.rank for r in ranked),
        average_score=_round2(average),
        median_score=_round2(median),
        tied_ranks=tied,
    )
