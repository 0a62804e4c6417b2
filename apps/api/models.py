from sqlalchemy import Column, Integer, Boolean, CheckConstraint, Date, DateTime, ForeignKey, Numeric, Text, String, Index, UniqueConstraint, JSON, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from core.database import Base
import uuid


USER_ROLES = ("admin", "team", "coach", "client")
USER_STATUSES = ("active", "inactive", "suspended")

SESSION_STATUSES = ("scheduled", "in_progress", "completed", "canceled", "no_show")
# Sessions in these states hold their coach's time slot.
ACTIVE_SESSION_STATUSES = ("scheduled", "in_progress")


class User(Base):
    __tablename__ = "user"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(320), unique=True, nullable=False)  # always stored lowercase
    password_hash = Column(Text, nullable=False)
    name = Column(Text, nullable=False)
    phone = Column(Text, nullable=True)
    role = Column(String(16), default="client", nullable=False)
    status = Column(String(16), default="active", nullable=False)

    # --- LOCKOUT ---
    # Written with single UPDATE statements only (see services/users_service.py).
    failed_login_attempts = Column(Integer, default=0, nullable=False)
    locked_until = Column(DateTime(timezone=True), nullable=True)
    last_login_at = Column(DateTime(timezone=True), nullable=True)

    email_verified_at = Column(DateTime(timezone=True), nullable=True)
    phone_verified_at = Column(DateTime(timezone=True), nullable=True)
    two_factor_enabled = Column(Boolean, default=False, nullable=False)

    # Onboarding gate: parents must submit at least one kid before refreshing.
    kids_data_completed = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("role IN ('admin', 'team', 'coach', 'client')", name="ck_user_role"),
        CheckConstraint("status IN ('active', 'inactive', 'suspended')", name="ck_user_status"),
        Index("ix_user_role_status", "role", "status"),
    )


class RefreshToken(Base):
    """
    Ledger of issued refresh tokens.

    Only sha256(raw token) is stored. A row is redeemable while
    is_revoked is false and expires_at is in the future; redemption flips
    is_revoked with a conditional UPDATE so a token rotates exactly once.
    """
    __tablename__ = "refresh_token"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    token_hash = Column(String(64), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    is_revoked = Column(Boolean, default=False, nullable=False)
    revoked_at = Column(DateTime(timezone=True), nullable=True)
    user_agent = Column(Text, nullable=True)
    ip_address = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("token_hash", name="uq_refresh_token_hash"),
        Index("ix_refresh_token_user_expires", "user_id", "expires_at"),
        Index("ix_refresh_token_expires_at", "expires_at"),
    )


class Coach(Base):
    __tablename__ = "coach"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("user.id"), nullable=False, unique=True)
    specialties = Column(JSON, nullable=False, default=list)
    bio = Column(Text, nullable=True)
    certifications = Column(JSON, nullable=False, default=list)
    years_of_experience = Column(Integer, nullable=True)
    education = Column(Text, nullable=True)
    # e.g. [{"day_of_week": 1, "start_time": "09:00", "end_time": "17:00", "is_available": true}]
    availability_rules = Column(JSON, nullable=False, default=list)
    # Denormalized stats written by an external aggregation job via update_kpis_cache().
    kpis_cache = Column(JSON, nullable=True)
    hourly_rate = Column(Numeric(10, 2), nullable=True)
    session_types = Column(JSON, nullable=False, default=list)
    status = Column(String(16), default="active", nullable=False)
    accepting_new_clients = Column(Boolean, default=True, nullable=False)
    notes = Column(Text, nullable=True)
    social_media = Column(JSON, nullable=True)
    portfolio_images = Column(JSON, nullable=False, default=list)
    email_notifications = Column(Boolean, default=True, nullable=False)
    sms_notifications = Column(Boolean, default=False, nullable=False)
    preferred_language = Column(String(8), default="en", nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    user = relationship("User", lazy="joined")

    __table_args__ = (
        Index("ix_coach_status_accepting", "status", "accepting_new_clients"),
    )


class Client(Base):
    __tablename__ = "client"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("user.id"), nullable=False, unique=True)
    date_of_birth = Column(Date, nullable=True)
    gender = Column(String(16), nullable=True)
    address = Column(JSON, nullable=True)
    goals = Column(JSON, nullable=False, default=list)
    fitness_level = Column(String(16), nullable=True)  # beginner | intermediate | advanced
    medical_conditions = Column(JSON, nullable=False, default=list)
    dietary_restrictions = Column(JSON, nullable=False, default=list)
    preferred_workout_times = Column(JSON, nullable=False, default=list)
    preferred_workout_types = Column(JSON, nullable=False, default=list)
    terms_accepted_at = Column(DateTime(timezone=True), nullable=True)
    privacy_policy_accepted_at = Column(DateTime(timezone=True), nullable=True)
    assigned_coach_id = Column(Uuid(as_uuid=True), ForeignKey("coach.id", ondelete="SET NULL"), nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    files = Column(JSON, nullable=False, default=list)
    status = Column(String(16), default="active", nullable=False)
    notes = Column(Text, nullable=True)
    emergency_contact = Column(JSON, nullable=True)
    email_notifications = Column(Boolean, default=True, nullable=False)
    sms_notifications = Column(Boolean, default=False, nullable=False)
    preferred_language = Column(String(8), default="en", nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    user = relationship("User", lazy="joined")
    assigned_coach = relationship("Coach", lazy="joined")

    __table_args__ = (
        Index("ix_client_assigned_coach", "assigned_coach_id"),
        Index("ix_client_status", "status"),
    )


class CoachingSession(Base):
    """
    A booked coaching appointment.

    Two sessions of the same coach whose status is scheduled or in_progress
    never overlap on the half-open interval [starts_at, ends_at).
    """
    __tablename__ = "coaching_session"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    client_id = Column(Uuid(as_uuid=True), ForeignKey("client.id"), nullable=False)
    coach_id = Column(Uuid(as_uuid=True), ForeignKey("coach.id"), nullable=False)
    starts_at = Column(DateTime(timezone=True), nullable=False)
    ends_at = Column(DateTime(timezone=True), nullable=False)
    status = Column(String(16), default="scheduled", nullable=False)
    location = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    session_type = Column(String(32), nullable=True)  # personal_training | group_class | ...
    price = Column(Numeric(10, 2), nullable=True)
    payment_status = Column(String(16), default="pending", nullable=False)
    google_event_id = Column(Text, nullable=True)
    reminder_sent = Column(Boolean, default=False, nullable=False)

    canceled_at = Column(DateTime(timezone=True), nullable=True)
    canceled_by = Column(Uuid(as_uuid=True), ForeignKey("user.id"), nullable=True)
    cancel_reason = Column(Text, nullable=True)

    feedback_rating = Column(Integer, nullable=True)
    feedback_comments = Column(Text, nullable=True)
    feedback_submitted_at = Column(DateTime(timezone=True), nullable=True)

    tags = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    client = relationship("Client", lazy="joined")
    coach = relationship("Coach", lazy="joined")

    __table_args__ = (
        CheckConstraint("starts_at < ends_at", name="ck_coaching_session_time_order"),
        CheckConstraint(
            "status IN ('scheduled', 'in_progress', 'completed', 'canceled', 'no_show')",
            name="ck_coaching_session_status",
        ),
        CheckConstraint("feedback_rating IS NULL OR (feedback_rating BETWEEN 1 AND 5)", name="ck_coaching_session_rating"),
        Index("ix_coaching_session_coach_starts", "coach_id", "starts_at"),
        Index("ix_coaching_session_client_starts", "client_id", "starts_at"),
        Index("ix_coaching_session_status", "status"),
        Index("ix_coaching_session_window", "starts_at", "ends_at"),
    )


class Kid(Base):
    __tablename__ = "kid"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    parent_id = Column(Uuid(as_uuid=True), ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    name = Column(Text, nullable=False)
    gender = Column(String(8), nullable=False)  # boy | girl
    age = Column(Integer, nullable=False)
    location = Column(Text, nullable=False)
    is_in_sports = Column(Boolean, nullable=False)
    preferred_training_style = Column(String(16), nullable=False)  # personal | group
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("age BETWEEN 1 AND 18", name="ck_kid_age"),
        Index("ix_kid_parent", "parent_id"),
    )


class CalendarAccount(Base):
    __tablename__ = "calendar_account"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    provider = Column(String(16), default="google", nullable=False)
    # Fernet ciphertext, see services/token_encryption.py
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=False)
    token_expires_at = Column(DateTime(timezone=True), nullable=False)
    calendar_id = Column(Text, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    sync_state = Column(JSON, nullable=True)
    email = Column(Text, nullable=True)
    name = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "provider", name="uq_calendar_account_user_provider"),
    )


class CalendarEvent(Base):
    __tablename__ = "calendar_event"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    session_id = Column(Uuid(as_uuid=True), ForeignKey("coaching_session.id", ondelete="CASCADE"), nullable=False, unique=True)
    provider_event_id = Column(Text, nullable=False)
    provider = Column(String(16), default="google", nullable=False)
    last_synced_at = Column(DateTime(timezone=True), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    sync_metadata = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("provider_event_id", "provider", name="uq_calendar_event_provider_event"),
    )
