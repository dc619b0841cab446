"""
accolade.database.models — SQLAlchemy 2.0 Data Models
======================================================

Tables:
- users          — Host-application members, with the profile fields badge
                   conditions read (flags, dates, completion inputs)
- user_metrics   — Named counters maintained by the host application
- badges         — Badge catalog: display metadata, condition tree, triggers
- user_badges    — Earned awards; append-mostly, revocation is a timestamp

The ``user_badges`` partial unique index (one non-revoked row per user and
badge) is the single source of truth for award idempotency.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from accolade.engine.badges import BadgeCategory, BadgeRarity


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Accolade ORM models."""


# ---------------------------------------------------------------------------
# Users — one row per member of the host application
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    name: Mapped[str | None] = mapped_column(String(100), default=None)
    email_verified: Mapped[bool] = mapped_column(Boolean, default=False)
    banned: Mapped[bool] = mapped_column(Boolean, default=False)

    # Profile inputs for the completion flags
    bio: Mapped[str | None] = mapped_column(Text, default=None)
    first_name: Mapped[str | None] = mapped_column(String(100), default=None)
    last_name: Mapped[str | None] = mapped_column(String(100), default=None)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False)
    socials: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    last_login_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    metrics: Mapped[list[UserMetric]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )
    badges: Mapped[list[UserBadge]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<User id={self.id!r} email={self.email!r}>"


# ---------------------------------------------------------------------------
# UserMetric — named counters (posts_published, places_owned, …)
# ---------------------------------------------------------------------------
class UserMetric(Base):
    __tablename__ = "user_metrics"

    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    metric: Mapped[str] = mapped_column(String(50), primary_key=True)
    value: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    user: Mapped[User] = relationship(back_populates="metrics")

    def __repr__(self) -> str:
        return f"<UserMetric user={self.user_id!r} {self.metric}={self.value}>"


# ---------------------------------------------------------------------------
# Badge — catalog entry with a condition tree
# ---------------------------------------------------------------------------
class Badge(Base):
    """A badge definition.

    ``criteria`` holds the condition tree in the JSON form understood by
    :func:`accolade.engine.conditions.parse_condition`; ``NULL`` marks a
    manual-only badge.  ``trigger_events`` lists the
    :class:`~accolade.engine.events.EventType` names that re-evaluate it.
    """
    __tablename__ = "badges"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)  # slug
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, default=None)
    category: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BadgeCategory.ACHIEVEMENT.value
    )
    rarity: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BadgeRarity.COMMON.value
    )
    color: Mapped[str | None] = mapped_column(String(20), default=None)
    icon: Mapped[str | None] = mapped_column(String(200), default=None)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    criteria: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    trigger_events: Mapped[list | None] = mapped_column(JSONB, default=list)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    awards: Mapped[list[UserBadge]] = relationship(back_populates="badge")

    __table_args__ = (
        Index("ix_badges_active", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<Badge id={self.id!r} title={self.title!r}>"


# ---------------------------------------------------------------------------
# UserBadge — earned awards
# ---------------------------------------------------------------------------
class UserBadge(Base):
    __tablename__ = "user_badges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    badge_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("badges.id", ondelete="CASCADE"), nullable=False
    )
    earned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    reason: Mapped[str | None] = mapped_column(Text, default=None)
    is_visible: Mapped[bool] = mapped_column(Boolean, default=True)
    revoked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    user: Mapped[User] = relationship(back_populates="badges")
    badge: Mapped[Badge] = relationship(back_populates="awards")

    __table_args__ = (
        # At most one active award per (user, badge); revoked rows are history.
        Index(
            "uq_user_badges_active",
            "user_id",
            "badge_id",
            unique=True,
            postgresql_where=revoked_at.is_(None),
            sqlite_where=revoked_at.is_(None),
        ),
        Index("ix_user_badges_badge", "badge_id"),
    )

    def __repr__(self) -> str:
        state = "revoked" if self.revoked_at is not None else "active"
        return f"<UserBadge user={self.user_id!r} badge={self.badge_id!r} {state}>"
