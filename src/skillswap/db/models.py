"""ORM models for users, the skill catalog, exchanges and learning paths."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from skillswap.db.base import Base, BigIntPK, JSONType
from skillswap.timeutils import utcnow

DEFAULT_BIO = "New SkillExchange member"


def default_email_notifications() -> dict[str, bool]:
    return {
        "exchange_requests": True,
        "exchange_accepted": True,
        "exchange_completed": True,
        "new_ratings": True,
        "new_messages": True,
        "marketing_emails": False,
    }


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """Maps to the 'users' table."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    username: Mapped[str | None] = mapped_column(String(50), unique=True, nullable=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    password_hash: Mapped[str] = mapped_column(String(256), nullable=False)
    bio: Mapped[str] = mapped_column(String(500), default=DEFAULT_BIO, nullable=False)
    location: Mapped[str | None] = mapped_column(String(100), nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    rating: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    total_exchanges: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    token_balance: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    tokens_spent: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    email_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    email_notifications: Mapped[dict[str, Any]] = mapped_column(
        JSONType, default=default_email_notifications, nullable=False
    )

    # --- Account recovery (OTP) ---
    reset_method: Mapped[str | None] = mapped_column(String(8), nullable=True)
    otp_hash: Mapped[str | None] = mapped_column(String(128), nullable=True)
    otp_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    otp_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=utcnow)

    # --- Relationships ---
    skills: Mapped[list[UserSkill]] = relationship(
        "UserSkill",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="UserSkill.id",
        lazy="selectin",
    )
    badges: Mapped[list[UserBadge]] = relationship(
        "UserBadge",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="UserBadge.id",
        lazy="selectin",
    )

    @property
    def skills_offered(self) -> list[UserSkill]:
        return [s for s in self.skills if s.kind == "offered"]

    @property
    def skills_wanted(self) -> list[UserSkill]:
        return [s for s in self.skills if s.kind == "wanted"]

    @property
    def badge_names(self) -> list[str]:
        return [b.badge for b in self.badges]


class UserSkill(Base):
    """A skill a user offers or wants to learn."""

    __tablename__ = "user_skills"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    kind: Mapped[str] = mapped_column(String(8), nullable=False)  # offered | wanted
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    category: Mapped[str | None] = mapped_column(String(50), nullable=True)
    subcategory: Mapped[str | None] = mapped_column(String(50), nullable=True)
    experience_level: Mapped[str] = mapped_column(String(16), default="Intermediate", nullable=False)
    years_of_experience: Mapped[int | None] = mapped_column(Integer, nullable=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    tags: Mapped[list[str]] = mapped_column(JSONType, default=list, nullable=False)
    verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    proficiency_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    user: Mapped[User] = relationship("User", back_populates="skills")
    endorsements: Mapped[list[SkillEndorsement]] = relationship(
        "SkillEndorsement",
        back_populates="user_skill",
        cascade="all, delete-orphan",
        order_by="SkillEndorsement.id",
        lazy="selectin",
    )


class SkillEndorsement(Base):
    """One endorsement per (skill entry, endorser)."""

    __tablename__ = "skill_endorsements"
    __table_args__ = (UniqueConstraint("user_skill_id", "endorser_id", name="uq_endorsement_per_endorser"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_skill_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("user_skills.id", ondelete="CASCADE"), nullable=False
    )
    endorser_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    endorser_name: Mapped[str] = mapped_column(String(100), nullable=False)
    comment: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    user_skill: Mapped[UserSkill] = relationship("UserSkill", back_populates="endorsements")


class UserBadge(Base):
    """Milestone badge. The unique constraint makes awarding idempotent."""

    __tablename__ = "user_badges"
    __table_args__ = (UniqueConstraint("user_id", "badge", name="uq_user_badge"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    badge: Mapped[str] = mapped_column(String(64), nullable=False)
    earned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    user: Mapped[User] = relationship("User", back_populates="badges")


class TokenLedger(Base):
    """Append-only token transaction log with idempotency key."""

    __tablename__ = "token_ledger"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    entry_type: Mapped[str] = mapped_column(String(16), nullable=False)  # earned | spent | bonus | penalty
    reason: Mapped[str] = mapped_column(String(256), nullable=False)
    exchange_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("exchanges.id", ondelete="SET NULL"), nullable=True
    )
    idempotency_key: Mapped[str | None] = mapped_column(String(256), unique=True, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


# ---------------------------------------------------------------------------
# Account recovery tokens
# ---------------------------------------------------------------------------


class PasswordResetToken(Base):
    """Single-use password reset token (sha256 hash stored)."""

    __tablename__ = "password_reset_tokens"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    token_hash: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class EmailVerificationToken(Base):
    """Single-use email verification token (sha256 hash stored)."""

    __tablename__ = "email_verification_tokens"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    token_hash: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


# ---------------------------------------------------------------------------
# Skill catalog
# ---------------------------------------------------------------------------


class Skill(Base):
    """Catalog skill. ``name_normalized`` enforces case-insensitive uniqueness."""

    __tablename__ = "skills"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    name_normalized: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    subcategory: Mapped[str | None] = mapped_column(String(50), nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    tags: Mapped[list[str]] = mapped_column(JSONType, default=list, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    usage_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=utcnow)

    videos: Mapped[list[SkillVideo]] = relationship(
        "SkillVideo",
        back_populates="skill",
        cascade="all, delete-orphan",
        order_by="SkillVideo.position",
        lazy="selectin",
    )


class SkillVideo(Base):
    """Instructional video attached to a catalog skill."""

    __tablename__ = "skill_videos"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    skill_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("skills.id", ondelete="CASCADE"), nullable=False)
    title: Mapped[str | None] = mapped_column(String(200), nullable=True)
    url: Mapped[str] = mapped_column(String(500), nullable=False)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)  # minutes
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    skill: Mapped[Skill] = relationship("Skill", back_populates="videos")


# ---------------------------------------------------------------------------
# Exchanges
# ---------------------------------------------------------------------------


class Exchange(Base):
    """A pairing between two users, each teaching one skill and learning another.

    ``requester_rating`` is the rating given BY the requester (about the
    provider), and vice versa.
    """

    __tablename__ = "exchanges"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    requester_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    provider_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    requested_skill: Mapped[str] = mapped_column(String(100), nullable=False)
    offered_skill: Mapped[str] = mapped_column(String(100), nullable=False)
    requested_skill_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("skills.id", ondelete="SET NULL"), nullable=True
    )
    offered_skill_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("skills.id", ondelete="SET NULL"), nullable=True
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), default="pending", nullable=False)

    requester_rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    requester_review: Mapped[str | None] = mapped_column(Text, nullable=True)
    provider_rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    provider_review: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Path ids are plain integers: learning_paths already references exchanges.
    requester_learning_path_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    provider_learning_path_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    learning_path_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    learning_completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rewarded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=utcnow)

    requester: Mapped[User] = relationship("User", foreign_keys=[requester_id], lazy="selectin")
    provider: Mapped[User] = relationship("User", foreign_keys=[provider_id], lazy="selectin")
    conversation: Mapped[Conversation | None] = relationship(
        "Conversation", back_populates="exchange", uselist=False, cascade="all, delete-orphan"
    )
    learning_paths: Mapped[list[LearningPath]] = relationship(
        "LearningPath", back_populates="exchange", cascade="all, delete-orphan"
    )

    def is_participant(self, user_id: int) -> bool:
        return user_id in (self.requester_id, self.provider_id)

    def other_party_id(self, user_id: int) -> int:
        return self.provider_id if user_id == self.requester_id else self.requester_id


# ---------------------------------------------------------------------------
# Conversations
# ---------------------------------------------------------------------------


class Conversation(Base):
    """Per-exchange message thread."""

    __tablename__ = "conversations"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    exchange_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("exchanges.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    participant_one_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    participant_two_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    last_message: Mapped[str | None] = mapped_column(String(500), nullable=True)
    last_message_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    exchange: Mapped[Exchange] = relationship("Exchange", back_populates="conversation")
    messages: Mapped[list[Message]] = relationship(
        "Message", back_populates="conversation", cascade="all, delete-orphan", order_by="Message.id"
    )

    def has_participant(self, user_id: int) -> bool:
        return user_id in (self.participant_one_id, self.participant_two_id)


class Message(Base):
    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    conversation_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False
    )
    sender_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    conversation: Mapped[Conversation] = relationship("Conversation", back_populates="messages")


# ---------------------------------------------------------------------------
# Learning paths
# ---------------------------------------------------------------------------


class LearningPath(Base):
    """One per (exchange, learner). Counters are recomputed on every module mutation."""

    __tablename__ = "learning_paths"
    __table_args__ = (UniqueConstraint("exchange_id", "learner_id", name="uq_learning_path_exchange_learner"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    exchange_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("exchanges.id", ondelete="CASCADE"), nullable=False
    )
    skill_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey("skills.id", ondelete="SET NULL"), nullable=True)
    skill_name: Mapped[str] = mapped_column(String(100), nullable=False)
    learner_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    instructor_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    total_modules: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    completed_modules: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    progress_percentage: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[str] = mapped_column(String(16), default="not-started", nullable=False)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancel_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    estimated_duration: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    actual_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    average_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=utcnow)

    exchange: Mapped[Exchange] = relationship("Exchange", back_populates="learning_paths")
    modules: Mapped[list[LearningModule]] = relationship(
        "LearningModule",
        back_populates="learning_path",
        cascade="all, delete-orphan",
        order_by="LearningModule.position",
        lazy="selectin",
    )

    def module_by_id(self, module_id: int) -> LearningModule | None:
        return next((m for m in self.modules if m.id == module_id), None)


class LearningModule(Base):
    """Module inside a learning path. Video fields are a denormalized copy."""

    __tablename__ = "learning_modules"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    learning_path_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("learning_paths.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    video_url: Mapped[str] = mapped_column(String(500), default="", nullable=False)
    video_title: Mapped[str | None] = mapped_column(String(200), nullable=True)
    duration: Mapped[int] = mapped_column(Integer, default=45, nullable=False)
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    learning_path: Mapped[LearningPath] = relationship("LearningPath", back_populates="modules")
