"""
Pure scoring functions.

Player aggregates and the session leaderboard are always derived from the
full score history, never patched incrementally.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from .models import LeaderboardEntry, PlayerAggregates, Score


def round_score(value: float) -> float:
    """Round half-up to two decimals (82.505 -> 82.51)."""
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def ranking_key(score: float, time_taken: float) -> tuple[float, float]:
    """Sort key shared by score listings, the leaderboard and exports."""
    return (-score, time_taken)


def compute_aggregates(history: Iterable[Score]) -> PlayerAggregates:
    """Derive a player's aggregates from all of their scores in a room."""
    scores = sorted(history, key=lambda s: (s.round_number, s.round_id))
    if not scores:
        return PlayerAggregates()

    values = [s.score for s in scores]
    total = sum(values)
    return PlayerAggregates(
        score=total,
        attempts=len(values),
        best_score=max(values),
        session_score=round_score(total / len(values)),
        round_scores=values,
    )


def build_leaderboard(scores: Iterable[Score]) -> list[LeaderboardEntry]:
    """
    Rank players by average score across the rounds they played.

    Averages rather than totals are used so that a player who missed a round
    is not ranked below everyone who played it. Ties fall back to the lower
    average time taken, then to whoever scored first.
    """
    grouped: dict[str, list[Score]] = {}
    for score in sorted(scores, key=lambda s: (s.round_number, s.round_id)):
        grouped.setdefault(score.player_id, []).append(score)

    rows = []
    for player_id, player_scores in grouped.items():
        values = [s.score for s in player_scores]
        total = sum(values)
        average = round_score(total / len(values))
        average_time = round_score(sum(s.time_taken for s in player_scores) / len(player_scores))
        rows.append({
            "player_id": player_id,
            "player_name": player_scores[-1].player_name,
            "session_score": average,
            "round_scores": values,
            "total_score": total,
            "average_score": average,
            "average_time_taken": average_time,
            "best_score": max(values),
        })

    # sort() is stable, so equal keys keep first-appearance order
    rows.sort(key=lambda r: ranking_key(r["average_score"], r["average_time_taken"]))

    return [LeaderboardEntry(rank=i + 1, **row) for i, row in enumerate(rows)]
