from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_serializer, field_validator, model_validator
from datetime import datetime, date
from decimal import Decimal
from uuid import UUID
from typing import Optional, List, Dict, Any, Literal

from core.clock import ensure_utc

UserRole = Literal["admin", "team", "coach", "client"]
UserStatus = Literal["active", "inactive", "suspended"]
SessionStatus = Literal["scheduled", "in_progress", "completed", "canceled", "no_show"]
ProfileStatus = Literal["active", "inactive", "suspended"]


class _UTCModel(BaseModel):
    """Normalizes every datetime field to aware UTC on the way in and out."""

    @field_validator("*", mode="after")
    @classmethod
    def _normalize_datetimes(cls, value):
        if isinstance(value, datetime):
            return ensure_utc(value)
        return value


# --- Users / auth ---

class UserResponse(_UTCModel):
    id: UUID
    email: str
    name: str
    phone: Optional[str] = None
    role: str
    status: str
    kids_data_completed: bool = False
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_serializer('id')
    def serialize_id(self, id: UUID) -> str:
        return str(id)


class UserUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    phone: Optional[str] = None
    role: Optional[UserRole] = None
    status: Optional[UserStatus] = None


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=72)
    name: str = Field(min_length=1, max_length=120)
    phone: Optional[str] = None
    # Staff roles (admin, team) are granted by an admin, never self-assigned.
    role: Literal["coach", "client"] = "client"


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=1)


class LogoutRequest(BaseModel):
    refresh_token: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(min_length=8, max_length=72)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str
    new_password: str = Field(min_length=8, max_length=72)


class TokenPair(_UTCModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    expires_at: datetime


class AuthResponse(BaseModel):
    tokens: TokenPair
    user: UserResponse


# --- Coaches ---

class CoachCreate(BaseModel):
    user_id: UUID
    specialties: List[str] = Field(min_length=1)
    bio: Optional[str] = None
    certifications: List[str] = Field(default_factory=list)
    years_of_experience: Optional[int] = Field(default=None, ge=0)
    education: Optional[str] = None
    availability_rules: List[Dict[str, Any]] = Field(default_factory=list)
    hourly_rate: Optional[Decimal] = Field(default=None, ge=0)
    session_types: List[Dict[str, Any]] = Field(default_factory=list)
    status: ProfileStatus = "active"
    accepting_new_clients: bool = True
    notes: Optional[str] = None
    social_media: Optional[Dict[str, str]] = None
    portfolio_images: List[str] = Field(default_factory=list)
    email_notifications: bool = True
    sms_notifications: bool = False
    preferred_language: str = "en"


class CoachUpdate(BaseModel):
    specialties: Optional[List[str]] = None
    bio: Optional[str] = None
    certifications: Optional[List[str]] = None
    years_of_experience: Optional[int] = Field(default=None, ge=0)
    education: Optional[str] = None
    availability_rules: Optional[List[Dict[str, Any]]] = None
    hourly_rate: Optional[Decimal] = Field(default=None, ge=0)
    session_types: Optional[List[Dict[str, Any]]] = None
    status: Optional[ProfileStatus] = None
    accepting_new_clients: Optional[bool] = None
    notes: Optional[str] = None
    social_media: Optional[Dict[str, str]] = None
    portfolio_images: Optional[List[str]] = None
    email_notifications: Optional[bool] = None
    sms_notifications: Optional[bool] = None
    preferred_language: Optional[str] = None


class CoachResponse(_UTCModel):
    id: UUID
    user_id: UUID
    user: Optional[UserResponse] = None
    specialties: List[str] = []
    bio: Optional[str] = None
    certifications: List[str] = []
    years_of_experience: Optional[int] = None
    education: Optional[str] = None
    availability_rules: List[Dict[str, Any]] = []
    kpis_cache: Optional[Dict[str, Any]] = None
    hourly_rate: Optional[float] = None
    session_types: List[Dict[str, Any]] = []
    status: str
    accepting_new_clients: bool
    notes: Optional[str] = None
    social_media: Optional[Dict[str, str]] = None
    portfolio_images: List[str] = []
    email_notifications: bool = True
    sms_notifications: bool = False
    preferred_language: str = "en"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CoachStats(BaseModel):
    total_sessions: int = 0
    total_clients: int = 0
    average_rating: float = 0.0
    total_earnings: float = 0.0


# --- Clients ---

class Address(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None


class EmergencyContact(BaseModel):
    name: str
    relationship: str
    phone: str
    email: Optional[EmailStr] = None


class ClientCreate(_UTCModel):
    user_id: UUID
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    address: Optional[Address] = None
    goals: List[str] = Field(default_factory=list)
    fitness_level: Optional[Literal["beginner", "intermediate", "advanced"]] = None
    medical_conditions: List[str] = Field(default_factory=list)
    dietary_restrictions: List[str] = Field(default_factory=list)
    preferred_workout_times: List[str] = Field(default_factory=list)
    preferred_workout_types: List[str] = Field(default_factory=list)
    terms_accepted_at: Optional[datetime] = None
    privacy_policy_accepted_at: Optional[datetime] = None
    assigned_coach_id: Optional[UUID] = None
    tags: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    emergency_contact: Optional[EmergencyContact] = None
    email_notifications: bool = True
    sms_notifications: bool = False
    preferred_language: str = "en"


class ClientUpdate(_UTCModel):
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    address: Optional[Address] = None
    goals: Optional[List[str]] = None
    fitness_level: Optional[Literal["beginner", "intermediate", "advanced"]] = None
    medical_conditions: Optional[List[str]] = None
    dietary_restrictions: Optional[List[str]] = None
    preferred_workout_times: Optional[List[str]] = None
    preferred_workout_types: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    status: Optional[ProfileStatus] = None
    notes: Optional[str] = None
    emergency_contact: Optional[EmergencyContact] = None
    email_notifications: Optional[bool] = None
    sms_notifications: Optional[bool] = None
    preferred_language: Optional[str] = None


class AssignCoachRequest(BaseModel):
    client_id: UUID
    coach_id: UUID


class ClientResponse(_UTCModel):
    id: UUID
    user_id: UUID
    user: Optional[UserResponse] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    address: Optional[Dict[str, Any]] = None
    goals: List[str] = []
    fitness_level: Optional[str] = None
    medical_conditions: List[str] = []
    dietary_restrictions: List[str] = []
    preferred_workout_times: List[str] = []
    preferred_workout_types: List[str] = []
    terms_accepted_at: Optional[datetime] = None
    privacy_policy_accepted_at: Optional[datetime] = None
    assigned_coach_id: Optional[UUID] = None
    tags: List[str] = []
    files: List[str] = []
    status: str
    notes: Optional[str] = None
    emergency_contact: Optional[Dict[str, Any]] = None
    email_notifications: bool = True
    sms_notifications: bool = False
    preferred_language: str = "en"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# --- Sessions ---

class SessionCreate(_UTCModel):
    client_id: UUID
    coach_id: UUID
    starts_at: datetime
    ends_at: datetime
    location: Optional[str] = None
    notes: Optional[str] = None
    session_type: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    tags: List[str] = Field(default_factory=list)


class SessionUpdate(_UTCModel):
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    status: Optional[SessionStatus] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    session_type: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    payment_status: Optional[str] = None
    cancel_reason: Optional[str] = None
    tags: Optional[List[str]] = None


class CancelSessionRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=500)


class SessionFeedbackRequest(BaseModel):
    rating: int = Field(ge=1, le=5)
    comments: Optional[str] = Field(default=None, max_length=2000)


class CheckAvailabilityRequest(_UTCModel):
    coach_id: UUID
    starts_at: datetime
    ends_at: datetime

    @model_validator(mode="after")
    def _check_window(self):
        if self.starts_at >= self.ends_at:
            raise ValueError("starts_at must be before ends_at")
        return self


class AvailabilityResponse(BaseModel):
    available: bool


class SessionFeedback(_UTCModel):
    rating: int
    comments: Optional[str] = None
    submitted_at: Optional[datetime] = None


class SessionResponse(_UTCModel):
    id: UUID
    client_id: UUID
    coach_id: UUID
    starts_at: datetime
    ends_at: datetime
    status: str
    location: Optional[str] = None
    notes: Optional[str] = None
    session_type: Optional[str] = None
    price: Optional[float] = None
    payment_status: Optional[str] = None
    google_event_id: Optional[str] = None
    reminder_sent: bool = False
    canceled_at: Optional[datetime] = None
    canceled_by: Optional[UUID] = None
    cancel_reason: Optional[str] = None
    feedback: Optional[SessionFeedback] = None
    tags: List[str] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @model_validator(mode="before")
    @classmethod
    def _collect_feedback(cls, data):
        # ORM rows keep feedback in flat columns; expose it as one object.
        rating = getattr(data, "feedback_rating", None)
        if rating is None or isinstance(data, dict):
            return data
        fields = {name: getattr(data, name) for name in cls.model_fields if hasattr(data, name)}
        fields["feedback"] = {
            "rating": rating,
            "comments": data.feedback_comments,
            "submitted_at": data.feedback_submitted_at,
        }
        return fields


class SessionStats(BaseModel):
    total: int
    completed: int
    canceled: int
    no_show: int
    revenue: float


# --- Kids ---

class KidCreate(BaseModel):
    name: str = Field(min_length=2, max_length=50)
    gender: Literal["boy", "girl"]
    age: int = Field(ge=1, le=18)
    location: str = Field(min_length=2, max_length=100)
    is_in_sports: bool
    preferred_training_style: Literal["personal", "group"]


class KidUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    gender: Optional[Literal["boy", "girl"]] = None
    age: Optional[int] = Field(default=None, ge=1, le=18)
    location: Optional[str] = Field(default=None, min_length=2, max_length=100)
    is_in_sports: Optional[bool] = None
    preferred_training_style: Optional[Literal["personal", "group"]] = None


class KidResponse(_UTCModel):
    id: UUID
    parent_id: UUID
    name: str
    gender: str
    age: int
    location: str
    is_in_sports: bool
    preferred_training_style: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class KidBulkCreateSummary(BaseModel):
    created: List[KidResponse]
    count: int


# --- Calendar ---

class CalendarConnectRequest(BaseModel):
    provider: Literal["google"] = "google"
    calendar_id: Optional[str] = None


class CalendarAccountResponse(_UTCModel):
    id: UUID
    user_id: UUID
    provider: str
    calendar_id: str
    is_active: bool
    token_expires_at: datetime
    sync_state: Optional[Dict[str, Any]] = None
    email: Optional[str] = None
    name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class CalendarAuthUrlResponse(BaseModel):
    auth_url: str
    state: str
