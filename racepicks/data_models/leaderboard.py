"""
Leaderboard data models.

Provides immutable data transfer objects for leaderboard scopes, filters and
ranked rows.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Union


class SeriesType(Enum):
    """Series a race belongs to."""
    SX = "supercross"
    MX = "motocross"
    SMX = "championship"


class SeriesFilter(Enum):
    SX = "SX"
    MX = "MX"
    ALL = "all"

    def matches(self, series: Optional[SeriesType]) -> bool:
        if self is SeriesFilter.ALL:
            return True
        return series is not None and series.name == self.name


class TimePeriod(Enum):
    WEEK = "week"
    MONTH = "month"
    SEASON = "season"
    ALL = "all"


class LeaderboardStatus(Enum):
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"  # Scope exists but the feature is not implemented


@dataclass(frozen=True)
class GlobalScope:
    """Every user with activity."""


@dataclass(frozen=True)
class RegionalScope:
    region: str


@dataclass(frozen=True)
class GroupScope:
    group_id: str


@dataclass(frozen=True)
class FriendsScope:
    """Not yet available: always produces an UNAVAILABLE page."""
    user_id: str


LeaderboardScope = Union[GlobalScope, RegionalScope, GroupScope, FriendsScope]


def scope_key(scope: LeaderboardScope) -> str:
    """Stable string form of a scope, used for cache keys and logging."""
    if isinstance(scope, RegionalScope):
        return f"regional:{scope.region}"
    if isinstance(scope, GroupScope):
        return f"group:{scope.group_id}"
    if isinstance(scope, FriendsScope):
        return f"friends:{scope.user_id}"
    return "global"


@dataclass(frozen=True)
class LeaderboardFilter:
    time_period: TimePeriod = TimePeriod.ALL
    series: SeriesFilter = SeriesFilter.ALL


@dataclass(frozen=True)
class ScoredRace:
    """One PredictionScore as seen by the aggregator."""
    race_id: str
    race_date: datetime
    series: Optional[SeriesType]
    total_points: int
    exact_matches: int


@dataclass(frozen=True)
class MemberCandidate:
    """A user eligible for a scope, with their score history."""
    user_id: str
    scores: List[ScoredRace] = field(default_factory=list)
    display_name: Optional[str] = None


@dataclass(frozen=True)
class MemberStats:
    """Single leaderboard row. rank 0 means unranked."""
    user_id: str
    points: int
    accuracy: float
    current_streak: int
    best_streak: int
    total_predictions: int
    correct_predictions: int
    rank: int = 0
    display_name: Optional[str] = None


@dataclass(frozen=True)
class Leaderboard:
    """Fully ranked leaderboard plus the unranked rows of inactive candidates."""
    scope: LeaderboardScope
    filters: LeaderboardFilter
    entries: List[MemberStats]
    unranked: List[MemberStats] = field(default_factory=list)
    status: LeaderboardStatus = LeaderboardStatus.AVAILABLE

    def lookup(self, user_id: str) -> Optional[MemberStats]:
        """Row for a user, ranked or not; None if the user was never a candidate."""
        for member in self.entries:
            if member.user_id == user_id:
                return member
        for member in self.unranked:
            if member.user_id == user_id:
                return member
        return None


@dataclass(frozen=True)
class LeaderboardPage:
    """Paginated leaderboard data."""
    entries: List[MemberStats]
    current_page: int
    total_pages: int
    total_members: int
    scope: LeaderboardScope
    filters: LeaderboardFilter
    status: LeaderboardStatus = LeaderboardStatus.AVAILABLE

    @property
    def is_available(self) -> bool:
        return self.status is LeaderboardStatus.AVAILABLE


@dataclass(frozen=True)
class LiveUserScore:
    """Provisional standing of one user during a race."""
    user_id: str
    race_id: str
    current_points: int
    potential_points: int
    correct_picks: int
    pending_picks: int
    total_picks: int
    rank: int = 0
    total_participants: int = 0
