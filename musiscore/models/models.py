"""
MUSISCORE - Database Models

SQLAlchemy 2.0 models for the tables the scoring engine reads and writes.
Profiles, rosters and promos are owned by the web application; the engine
only applies score and currency deltas to them.
"""

from datetime import datetime, date
from enum import Enum as PyEnum
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    BigInteger, Boolean, Date, DateTime, Float, ForeignKey, Index,
    Integer, String, UniqueConstraint, func,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column
from musiscore.core.database import Base


# =============================================================================
# ENUMS
# =============================================================================

class BetStatus(str, PyEnum):
    PENDING = "pending"
    WON = "won"
    LOST = "lost"
    DRAW = "draw"


class BetSide(str, PyEnum):
    MY_ARTIST = "my_artist"
    RIVAL = "rival"
    DRAW = "draw"


# =============================================================================
# SEASONS & PROFILES
# =============================================================================

class Season(Base):
    """League seasons; exactly one is active at a time."""
    __tablename__ = "seasons"

    id: Mapped[UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now())


class Profile(Base):
    """Manager aggregate: running scores and currency balance."""
    __tablename__ = "profiles"

    id: Mapped[UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    username: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Primary score component, written by the accrual ledger
    total_score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # Secondary score component (bet payouts, listening rewards)
    listen_score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    musi_coins: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now(), onupdate=func.now())


# =============================================================================
# ARTISTS
# =============================================================================

class ArtistCache(Base):
    """Catalog of trackable artists with their latest known metrics."""
    __tablename__ = "artists_cache"

    spotify_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[Optional[str]] = mapped_column(String(300), nullable=True)
    current_popularity: Mapped[int] = mapped_column(Integer, default=0)
    current_followers: Mapped[int] = mapped_column(BigInteger, default=0)
    last_updated: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class FeaturedArtist(Base):
    """Globally featured artists (double captain bonus, always scored)."""
    __tablename__ = "featured_artists"

    spotify_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now())


class WeeklySnapshot(Base):
    """Frozen artist metrics at the start of a week. Never updated."""
    __tablename__ = "weekly_snapshots"

    id: Mapped[UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    week_number: Mapped[int] = mapped_column(Integer, nullable=False)
    artist_id: Mapped[str] = mapped_column(String(64), nullable=False)
    popularity: Mapped[int] = mapped_column(Integer, nullable=False)
    followers: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now())

    __table_args__ = (
        UniqueConstraint("week_number", "artist_id", name="uq_weekly_snapshots_week_artist"),
        Index("ix_weekly_snapshots_week", "week_number"),
    )


class WeeklyScore(Base):
    """Per-artist points for a week, upserted by every scoring run."""
    __tablename__ = "weekly_scores"

    week_number: Mapped[int] = mapped_column(Integer, primary_key=True)
    artist_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    popularity_gain: Mapped[int] = mapped_column(Integer, default=0)
    follower_gain_percent: Mapped[float] = mapped_column(Float, default=0.0)
    release_bonus: Mapped[int] = mapped_column(Integer, default=0)
    total_points: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now(), onupdate=func.now())


# =============================================================================
# MANAGERS' ROSTERS, LEDGER & BETS
# =============================================================================

class Team(Base):
    """Roster saved by a manager for a week (five slots plus captain)."""
    __tablename__ = "teams"

    id: Mapped[UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    week_number: Mapped[int] = mapped_column(Integer, nullable=False)
    slot_1_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    slot_2_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    slot_3_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    slot_4_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    slot_5_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    captain_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "week_number", name="uq_teams_user_week"),
        Index("ix_teams_week", "week_number"),
    )


class DailyScoreLog(Base):
    """Append-only ledger of point deltas applied to a manager."""
    __tablename__ = "daily_score_logs"

    id: Mapped[UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    week_number: Mapped[int] = mapped_column(Integer, nullable=False)
    points_gained: Mapped[int] = mapped_column(Integer, nullable=False)
    log_date: Mapped[date] = mapped_column("date", Date, nullable=False)
    seen_by_user: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now())

    __table_args__ = (
        Index("ix_daily_score_logs_user_week", "user_id", "week_number"),
    )


class DailyPromo(Base):
    """Daily promo card; when bet_done it carries a head-to-head bet in bet_snapshot."""
    __tablename__ = "daily_promos"

    id: Mapped[UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    artist_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    week_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    bet_done: Mapped[bool] = mapped_column(Boolean, default=False)
    bet_resolved: Mapped[bool] = mapped_column(Boolean, default=False)
    # {"rival": {"id": ...}, "wager": "my_artist"|"rival"|"draw",
    #  "initial_scores": {"my": int, "rival": int}, "status": ..., ...}
    bet_snapshot: Mapped[Optional[dict]] = mapped_column(JSONB, nullable=True)
    total_points: Mapped[int] = mapped_column(Integer, default=0)
    total_coins: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now())

    __table_args__ = (
        Index("ix_daily_promos_pending", "bet_done", "bet_resolved"),
    )


# =============================================================================
# LEADERBOARD
# =============================================================================

class LeaderboardConfig(Base):
    """Coin reward per rank tier (rank_1, rank_2, rank_3, top_10, ...)."""
    __tablename__ = "leaderboard_config"

    tier: Mapped[str] = mapped_column(String(20), primary_key=True)
    reward_musicoins: Mapped[int] = mapped_column(Integer, default=0)


class WeeklyLeaderboardHistory(Base):
    """Final standing of a manager for a closed week. Never updated."""
    __tablename__ = "weekly_leaderboard_history"

    id: Mapped[UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    week_number: Mapped[int] = mapped_column(Integer, nullable=False)
    rank: Mapped[int] = mapped_column(Integer, nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    reward_musicoins: Mapped[int] = mapped_column(Integer, default=0)
    is_seen: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "week_number", name="uq_leaderboard_history_user_week"),
        Index("ix_leaderboard_history_week_rank", "week_number", "rank"),
    )
