"""
Leaderboard aggregation and ranking.

One aggregator serves every scope: the scope only decides which candidate
users are passed in (and whether the board is available at all), while the
filter decides which of their scores count.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple

from racepicks.data_models.leaderboard import (
    FriendsScope, GlobalScope, GroupScope, Leaderboard, LeaderboardFilter,
    LeaderboardScope, LeaderboardStatus, MemberCandidate, MemberStats,
    RegionalScope, ScoredRace
)
from racepicks.utils.time_filters import Bounds, resolve_time_bounds, within_bounds

logger = logging.getLogger(__name__)

KNOWN_SCOPES = (GlobalScope, RegionalScope, GroupScope, FriendsScope)


class LeaderboardAggregator:
    """Read-only aggregation of PredictionScores into ranked MemberStats."""

    @staticmethod
    def filter_scores(scores: Iterable[ScoredRace], filters: LeaderboardFilter,
                      bounds: Bounds) -> List[ScoredRace]:
        return [
            score for score in scores
            if within_bounds(score.race_date, bounds) and filters.series.matches(score.series)
        ]

    @staticmethod
    def calculate_streaks(scores: Sequence[ScoredRace]) -> Tuple[int, int]:
        """
        Current and best run of races with at least one exact match.

        The current streak is counted backwards from the most recent race and
        ends at the first race without an exact match.
        """
        if not scores:
            return 0, 0

        most_recent_first = sorted(scores, key=lambda s: (s.race_date, s.race_id), reverse=True)

        current = 0
        for score in most_recent_first:
            if score.exact_matches <= 0:
                break
            current += 1

        best = 0
        run = 0
        for score in most_recent_first:
            if score.exact_matches > 0:
                run += 1
                best = max(best, run)
            else:
                run = 0

        return current, best

    @staticmethod
    def member_stats(candidate: MemberCandidate, filters: LeaderboardFilter,
                     bounds: Bounds) -> MemberStats:
        """Unranked leaderboard row for one candidate"""
        scores = LeaderboardAggregator.filter_scores(candidate.scores, filters, bounds)

        total_predictions = len(scores)
        correct_predictions = sum(1 for score in scores if score.exact_matches > 0)
        accuracy = (correct_predictions * 100 / total_predictions) if total_predictions else 0.0
        current_streak, best_streak = LeaderboardAggregator.calculate_streaks(scores)

        return MemberStats(
            user_id=candidate.user_id,
            points=sum(score.total_points for score in scores),
            accuracy=float(accuracy),
            current_streak=current_streak,
            best_streak=best_streak,
            total_predictions=total_predictions,
            correct_predictions=correct_predictions,
            rank=0,
            display_name=candidate.display_name,
        )

    @staticmethod
    def sort_key(stats: MemberStats) -> Tuple[int, float, int]:
        """Ranking priority: points, then accuracy, then total predictions"""
        return (stats.points, stats.accuracy, stats.total_predictions)

    @staticmethod
    def compare(a: MemberStats, b: MemberStats) -> int:
        """1 if a ranks above b, -1 if below, 0 if tied on all three keys"""
        key_a = LeaderboardAggregator.sort_key(a)
        key_b = LeaderboardAggregator.sort_key(b)
        return (key_a > key_b) - (key_a < key_b)

    @staticmethod
    def assign_ranks(stats: Iterable[MemberStats]) -> List[MemberStats]:
        """
        Stable descending sort and dense 1..N ranks.

        Ties on every key keep their input order and still get distinct ranks.
        """
        ordered = sorted(stats, key=LeaderboardAggregator.sort_key, reverse=True)
        return [replace(member, rank=index) for index, member in enumerate(ordered, start=1)]

    @staticmethod
    def aggregate(scope: LeaderboardScope, candidates: Iterable[MemberCandidate],
                  filters: Optional[LeaderboardFilter] = None,
                  now: Optional[datetime] = None) -> Leaderboard:
        """
        Build the ranked leaderboard for a scope.

        Args:
            scope: Global, Regional, Group or Friends scope
            candidates: Users appropriate to the scope with their score history
            filters: Time period and series filter (defaults to all/all)
            now: Reference time for the time period

        Returns:
            Leaderboard with ranked entries; members without in-filter
            predictions are kept in `unranked` with rank 0
        """
        filters = filters or LeaderboardFilter()

        if isinstance(scope, FriendsScope):
            logger.info("Friends leaderboard requested but not yet available")
            return Leaderboard(scope, filters, [], [], LeaderboardStatus.UNAVAILABLE)

        if not isinstance(scope, KNOWN_SCOPES):
            logger.warning(f"Unknown leaderboard scope {scope!r}, returning empty leaderboard")
            return Leaderboard(scope, filters, [], [])

        bounds = resolve_time_bounds(filters.time_period, now)

        ranked_pool: List[MemberStats] = []
        unranked: List[MemberStats] = []
        seen = set()
        for candidate in candidates:
            if candidate.user_id in seen:
                continue
            seen.add(candidate.user_id)

            stats = LeaderboardAggregator.member_stats(candidate, filters, bounds)
            if stats.total_predictions > 0:
                ranked_pool.append(stats)
            else:
                unranked.append(stats)

        entries = LeaderboardAggregator.assign_ranks(ranked_pool)
        logger.debug(f"Aggregated {len(entries)} ranked and {len(unranked)} unranked members")
        return Leaderboard(scope, filters, entries, unranked)
