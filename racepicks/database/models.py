from sqlalchemy import (
    Column, Integer, String, DateTime, Date, Boolean, Text, Float, JSON,
    ForeignKey, Enum as SQLEnum, UniqueConstraint, CheckConstraint
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

from racepicks.data_models.leaderboard import SeriesType
from racepicks.data_models.prediction import BonusPicks, Pick, Prediction, RaceResult, ResultPosition
from racepicks.data_models.profile import StreakState
from racepicks.data_models.score import ScoreStatus

Base = declarative_base()

class Race(Base):
    __tablename__ = 'races'

    id = Column(String(64), primary_key=True)
    name = Column(String(200), nullable=False)
    date = Column(DateTime, nullable=False, index=True)
    series = Column(SQLEnum(SeriesType), nullable=False, default=SeriesType.SX)
    track_name = Column(String(200), nullable=True)

    # Metadata
    created_at = Column(DateTime, default=func.now())

    # Relationships
    predictions = relationship("PredictionRecord", back_populates="race", cascade="all, delete-orphan")
    results = relationship("RaceResultEntry", back_populates="race", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Race(id='{self.id}', name='{self.name}', series='{self.series}')>"

class UserProfile(Base):
    __tablename__ = 'user_profiles'

    id = Column(String(64), primary_key=True)
    username = Column(String(100), nullable=False)
    display_name = Column(String(100))
    region = Column(String(64), nullable=True, index=True)

    # Day-streak cache used for the streak multiplier; leaderboard streaks
    # are always derived from score history instead
    current_streak = Column(Integer, default=0)
    longest_streak = Column(Integer, default=0)
    last_activity_date = Column(Date, nullable=True)

    # Metadata
    registered_at = Column(DateTime, default=func.now())

    def streak_state(self) -> StreakState:
        return StreakState(
            current_streak=self.current_streak or 0,
            longest_streak=self.longest_streak or 0,
            last_activity_date=self.last_activity_date,
        )

    def __repr__(self):
        return f"<UserProfile(id='{self.id}', username='{self.username}')>"

class GroupMember(Base):
    __tablename__ = 'group_members'

    id = Column(Integer, primary_key=True)
    group_id = Column(String(64), nullable=False, index=True)
    user_id = Column(String(64), ForeignKey('user_profiles.id'), nullable=False)
    joined_at = Column(DateTime, default=func.now())

    __table_args__ = (UniqueConstraint('group_id', 'user_id'),)

class PredictionRecord(Base):
    __tablename__ = 'predictions'

    id = Column(Integer, primary_key=True)
    race_id = Column(String(64), ForeignKey('races.id'), nullable=False, index=True)
    user_id = Column(String(64), ForeignKey('user_profiles.id'), nullable=False, index=True)

    # [[rider_id, predicted_position], ...], at most 5
    picks = Column(JSON, nullable=False)
    confidence_level = Column(Integer, nullable=True)

    # Bonus categories
    holeshot_winner_id = Column(String(64), nullable=True)
    fastest_lap_rider_id = Column(String(64), nullable=True)
    qualifying_1_id = Column(String(64), nullable=True)
    qualifying_2_id = Column(String(64), nullable=True)
    qualifying_3_id = Column(String(64), nullable=True)

    submitted_at = Column(DateTime, default=func.now())

    race = relationship("Race", back_populates="predictions")

    __table_args__ = (UniqueConstraint('race_id', 'user_id'),)

    def to_domain(self) -> Prediction:
        bonus = BonusPicks(
            holeshot_winner_id=self.holeshot_winner_id,
            fastest_lap_rider_id=self.fastest_lap_rider_id,
            qualifying_1_id=self.qualifying_1_id,
            qualifying_2_id=self.qualifying_2_id,
            qualifying_3_id=self.qualifying_3_id,
        )
        return Prediction(
            race_id=self.race_id,
            user_id=self.user_id,
            picks=tuple(Pick(rider_id, position) for rider_id, position in self.picks or []),
            confidence_level=self.confidence_level,
            bonus=None if bonus.is_empty else bonus,
        )

    @classmethod
    def from_domain(cls, prediction: Prediction) -> 'PredictionRecord':
        bonus = prediction.bonus or BonusPicks()
        return cls(
            race_id=prediction.race_id,
            user_id=prediction.user_id,
            picks=[[p.rider_id, p.predicted_position] for p in prediction.picks],
            confidence_level=prediction.confidence_level,
            holeshot_winner_id=bonus.holeshot_winner_id,
            fastest_lap_rider_id=bonus.fastest_lap_rider_id,
            qualifying_1_id=bonus.qualifying_1_id,
            qualifying_2_id=bonus.qualifying_2_id,
            qualifying_3_id=bonus.qualifying_3_id,
        )

class RaceResultEntry(Base):
    __tablename__ = 'race_results'

    id = Column(Integer, primary_key=True)
    race_id = Column(String(64), ForeignKey('races.id'), nullable=False, index=True)
    rider_id = Column(String(64), nullable=False)
    position = Column(Integer, nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    race = relationship("Race", back_populates="results")

    # One position per rider and one rider per position
    __table_args__ = (
        UniqueConstraint('race_id', 'rider_id'),
        UniqueConstraint('race_id', 'position'),
        CheckConstraint('position > 0', name='positive_position'),
    )

class BonusResultRecord(Base):
    __tablename__ = 'bonus_results'

    race_id = Column(String(64), ForeignKey('races.id'), primary_key=True)
    holeshot_winner_id = Column(String(64), nullable=True)
    fastest_lap_rider_id = Column(String(64), nullable=True)
    qualifying_1_id = Column(String(64), nullable=True)
    qualifying_2_id = Column(String(64), nullable=True)
    qualifying_3_id = Column(String(64), nullable=True)

    def to_domain(self) -> BonusPicks:
        return BonusPicks(
            holeshot_winner_id=self.holeshot_winner_id,
            fastest_lap_rider_id=self.fastest_lap_rider_id,
            qualifying_1_id=self.qualifying_1_id,
            qualifying_2_id=self.qualifying_2_id,
            qualifying_3_id=self.qualifying_3_id,
        )

class PredictionScoreRecord(Base):
    """Derived score snapshot per (user, race); overwritten on every rescore"""
    __tablename__ = 'prediction_scores'

    id = Column(Integer, primary_key=True)
    race_id = Column(String(64), ForeignKey('races.id'), nullable=False, index=True)
    user_id = Column(String(64), ForeignKey('user_profiles.id'), nullable=False, index=True)

    status = Column(SQLEnum(ScoreStatus), nullable=False, default=ScoreStatus.SUBMITTED)
    input_hash = Column(String(64), nullable=True)

    # Full PredictionScore breakdown plus denormalized leaderboard columns
    breakdown = Column(JSON, nullable=True)
    total_points = Column(Integer, default=0)
    exact_matches = Column(Integer, default=0)
    accuracy = Column(Float, default=0.0)
    is_perfect = Column(Boolean, default=False)
    streak_days = Column(Integer, default=0)
    bonus_points = Column(Integer, default=0)  # Bonus categories, not part of total_points

    calculated_at = Column(DateTime, nullable=True)

    __table_args__ = (UniqueConstraint('race_id', 'user_id'),)

    @property
    def is_scored(self) -> bool:
        return self.status is not ScoreStatus.SUBMITTED

    def __repr__(self):
        return f"<PredictionScoreRecord(race='{self.race_id}', user='{self.user_id}', status={self.status}, total={self.total_points})>"

class AchievementGrant(Base):
    """Achievement and milestone points, a ledger separate from race scores"""
    __tablename__ = 'achievement_grants'

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), ForeignKey('user_profiles.id'), nullable=False, index=True)
    grant_type = Column(String(32), nullable=False)
    grant_value = Column(Integer, nullable=False)
    title = Column(String(200), nullable=False)
    points_awarded = Column(Integer, nullable=False)
    granted_at = Column(DateTime, default=func.now())

    __table_args__ = (UniqueConstraint('user_id', 'grant_type', 'grant_value'),)

class Configuration(Base):
    __tablename__ = 'configurations'

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=False)  # JSON-encoded
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

class AuditLog(Base):
    __tablename__ = 'audit_logs'

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), nullable=False)
    action = Column(String(50), nullable=False)
    details = Column(Text, nullable=True)  # JSON-encoded
    created_at = Column(DateTime, default=func.now())


def result_from_entries(race_id: str, entries) -> RaceResult:
    """Build a RaceResult from RaceResultEntry rows"""
    return RaceResult(
        race_id=race_id,
        positions=tuple(ResultPosition(entry.rider_id, entry.position) for entry in entries),
    )
