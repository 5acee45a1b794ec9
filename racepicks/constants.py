"""
Engine-wide constants for race prediction scoring.

This module contains the point tables and tier thresholds used throughout
the scoring and leaderboard code so they live in exactly one place.
"""

class ScoringConstants:
    """Constants related to main prediction scoring."""

    # Base points by absolute position difference
    EXACT_MATCH = 100
    ONE_OFF = 50
    TWO_OFF = 25
    THREE_OFF = 10
    FOUR_OFF = 5
    WRONG = 0  # 5+ positions off or rider not in results

    BASE_POINTS_BY_DIFF = {
        0: EXACT_MATCH,
        1: ONE_OFF,
        2: TWO_OFF,
        3: THREE_OFF,
        4: FOUR_OFF,
    }

    # Bonus for all main picks exact
    PERFECT_PREDICTION_BONUS = 500

    # Number of main picks in a full prediction
    MAX_PICKS = 5
    MIN_POSITION = 1
    MAX_POSITION = 5

class ConfidenceConstants:
    """Risk dial: confidence level -> (multiplier, label, description)."""

    NEUTRAL_MULTIPLIER = 1.0

    LEVELS = {
        1: (0.5, 'Very Unsure', '50% points - Low risk, low reward'),
        2: (0.75, 'Somewhat Unsure', '75% points - Below average confidence'),
        3: (1.0, 'Neutral', '100% points - Standard confidence'),
        4: (1.5, 'Confident', '150% points - High risk, high reward'),
        5: (2.0, 'Very Confident', '200% points - Maximum risk, maximum reward'),
    }

class StreakConstants:
    """Day-streak reward tiers, ascending by threshold."""

    # (streak_days, bonus_multiplier, badge_title)
    TIERS = (
        (3, 1.10, 'Hot Start'),
        (7, 1.25, 'On Fire'),
        (14, 1.50, 'Blazing'),
        (30, 2.00, 'Inferno'),
        (60, 2.50, 'Legendary Streak'),
        (100, 3.00, 'Unstoppable'),
    )

    NO_BONUS_MULTIPLIER = 1.0

    # Send a reminder when a streak at least this long is broken
    REMINDER_THRESHOLD = 3

class BonusConstants:
    """Supplemental bonus category points."""

    HOLESHOT_POINTS = 15
    FASTEST_LAP_POINTS = 10
    QUALIFYING_POINTS_PER_SLOT = 5
    QUALIFYING_SLOTS = 3
    MAX_BONUS_POINTS = HOLESHOT_POINTS + FASTEST_LAP_POINTS + QUALIFYING_POINTS_PER_SLOT * QUALIFYING_SLOTS

class LiveConstants:
    """Constants for provisional scoring during a race."""

    # Optimistic value of every pick still pending
    PENDING_PICK_POTENTIAL = ScoringConstants.EXACT_MATCH

class MilestoneConstants:
    """Milestone tiers and reward formulas (separate ledger from race points)."""

    PREDICTION_MILESTONES = (10, 25, 50, 100, 250, 500, 1000)
    POINTS_MILESTONES = (100, 500, 1000, 5000, 10000, 25000, 50000)
    ACCURACY_MILESTONES = (50, 60, 70, 80, 90)

    PREDICTION_REWARD_FACTOR = 10
    POINTS_REWARD_FACTOR = 0.1
    ACCURACY_REWARD_FACTOR = 5

class PaginationConstants:
    """Constants for paginated leaderboards."""

    DEFAULT_PAGE_SIZE = 10
    MAX_PAGE_SIZE = 50

class CacheConstants:
    """Constants for caching behavior."""

    # Maximum cached leaderboard pages
    DEFAULT_MAX_CACHE_SIZE = 500

class UIConstants:
    """Constants for notification embeds."""

    ACHIEVEMENT_COLOR = 0xffd700    # Gold
    STREAK_COLOR = 0xff6b6b         # Red
    RESULTS_COLOR = 0x2ecc71        # Green

    TROPHY_EMOJI = "🏆"
    FIRE_EMOJI = "🔥"
    CHART_EMOJI = "📊"
