from datetime import datetime
from typing import Iterable, List, Optional
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from contextlib import asynccontextmanager

from racepicks.config import Config
from racepicks.data_models.leaderboard import SeriesType
from racepicks.data_models.prediction import BonusResult, ResultPosition
from racepicks.database.models import (
    Base, Race, UserProfile, GroupMember, RaceResultEntry, BonusResultRecord
)
from racepicks.utils.exceptions import DatabaseError
from racepicks.utils.logger import setup_logger

class Database:
    def __init__(self, database_url: Optional[str] = None):
        self.logger = setup_logger(__name__)
        self.database_url = database_url
        self.engine = None
        self.async_session = None

    @property
    def session_factory(self) -> async_sessionmaker:
        if self.async_session is None:
            raise RuntimeError("Database.initialize() must be awaited first")
        return self.async_session

    async def initialize(self):
        """Initialize the database connection and create tables"""
        self.logger.info("Initializing database...")

        # Convert sqlite URL to async if needed
        database_url = self.database_url or Config.get_async_database_url()
        if database_url.startswith('sqlite:///'):
            database_url = database_url.replace('sqlite:///', 'sqlite+aiosqlite:///')

        self.engine = create_async_engine(
            database_url,
            echo=Config.DEBUG,
            future=True
        )

        self.async_session = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False
        )

        # Create all tables
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        self.logger.info("Database initialized successfully")

    @asynccontextmanager
    async def get_session(self):
        """Get a database session"""
        async with self.session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    @asynccontextmanager
    async def transaction(self):
        """
        Create a transaction boundary for atomic operations.

        Everything written through the yielded session commits together on
        success or rolls back together on failure. Exceptions must be allowed
        to propagate out of the context for rollback to occur.
        """
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    async def close(self):
        """Close the database connection"""
        if self.engine:
            await self.engine.dispose()
            self.logger.info("Database connection closed")

    # Race operations
    async def create_race(self, race_id: str, name: str, date: datetime,
                          series: SeriesType = SeriesType.SX, track_name: str = None) -> Race:
        """Register a race"""
        async with self.transaction() as session:
            race = Race(id=race_id, name=name, date=date, series=series, track_name=track_name)
            session.add(race)
        return race

    async def get_race(self, race_id: str) -> Optional[Race]:
        async with self.get_session() as session:
            return await session.get(Race, race_id)

    # Profile operations
    async def create_user(self, user_id: str, username: str, display_name: str = None,
                          region: str = None) -> UserProfile:
        """Create a new user profile"""
        async with self.transaction() as session:
            profile = UserProfile(
                id=user_id,
                username=username,
                display_name=display_name or username,
                region=region,
                current_streak=0,
                longest_streak=0
            )
            session.add(profile)
        return profile

    async def get_user(self, user_id: str) -> Optional[UserProfile]:
        async with self.get_session() as session:
            return await session.get(UserProfile, user_id)

    async def add_group_member(self, group_id: str, user_id: str) -> GroupMember:
        async with self.transaction() as session:
            member = GroupMember(group_id=group_id, user_id=user_id)
            session.add(member)
        return member

    # Result operations
    async def record_race_results(self, race_id: str, positions: Iterable[ResultPosition]) -> List[RaceResultEntry]:
        """
        Replace the known finishing positions for a race.

        A result feed always sends the full set known so far, so corrections
        and late positions both arrive as a complete replacement.

        Raises:
            DatabaseError: If a rider or a position appears twice; the
                previous results are kept
        """
        positions = list(positions)
        try:
            async with self.transaction() as session:
                await session.execute(delete(RaceResultEntry).where(RaceResultEntry.race_id == race_id))
                # Flush the delete before re-inserting rows under the same unique keys
                await session.flush()
                entries = [
                    RaceResultEntry(race_id=race_id, rider_id=p.rider_id, position=p.position)
                    for p in positions
                ]
                session.add_all(entries)
        except IntegrityError as e:
            self.logger.error(f"Rejected results for race {race_id}: {e.orig}")
            raise DatabaseError("record_race_results", str(e.orig)) from e
        self.logger.info(f"Recorded {len(entries)} result positions for race {race_id}")
        return entries

    async def record_bonus_results(self, race_id: str, bonus: BonusResult) -> BonusResultRecord:
        """Store the actual holeshot, fastest lap and qualifying outcomes"""
        async with self.transaction() as session:
            record = await session.get(BonusResultRecord, race_id)
            if record is None:
                record = BonusResultRecord(race_id=race_id)
                session.add(record)
            record.holeshot_winner_id = bonus.holeshot_winner_id
            record.fastest_lap_rider_id = bonus.fastest_lap_rider_id
            record.qualifying_1_id = bonus.qualifying_1_id
            record.qualifying_2_id = bonus.qualifying_2_id
            record.qualifying_3_id = bonus.qualifying_3_id
        return record

    async def get_race_results(self, race_id: str) -> List[RaceResultEntry]:
        async with self.get_session() as session:
            result = await session.execute(
                select(RaceResultEntry)
                .where(RaceResultEntry.race_id == race_id)
                .order_by(RaceResultEntry.position)
            )
            return list(result.scalars().all())
