"""
Request/response schemas.

This is the single field-shape validation stage: lengths, enums, numeric
bounds and conditional requirements are checked here before any service
runs. Services only enforce rules that need stored state.
"""
from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator
from datetime import datetime, date
from uuid import UUID
from typing import Optional, List, Literal


Weekday = Literal["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]
CoachingCategory = Literal["Career", "Business", "Lifestyle", "Health", "Technology", "Other"]


# --- Permissions ---

class PermissionCreate(BaseModel):
    resource: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=200)
    # Vocabulary is checked by the catalog so the error can list the offending actions.
    actions: List[str] = Field(..., min_length=1)
    is_system: bool = False


class PermissionUpdate(BaseModel):
    resource: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=200)
    actions: Optional[List[str]] = Field(default=None, min_length=1)
    is_system: Optional[bool] = None


class PermissionResponse(BaseModel):
    id: UUID
    resource: str
    description: Optional[str] = None
    actions: List[str]
    is_system: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# --- Roles ---

class RoleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = Field(default=None, max_length=200)
    permissions: List[UUID] = Field(default_factory=list)
    is_default: bool = False


class RoleUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    description: Optional[str] = Field(default=None, max_length=200)
    permissions: Optional[List[UUID]] = None
    is_default: Optional[bool] = None
    is_system_role: Optional[bool] = None


class RolePermissionsUpdate(BaseModel):
    permissions: List[UUID]


class RoleSummary(BaseModel):
    id: UUID
    name: str

    model_config = ConfigDict(from_attributes=True)


class RoleResponse(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None
    is_default: bool
    is_system_role: bool
    bypass_all_checks: bool
    permissions: List[PermissionResponse] = Field(default_factory=list)
    created_by: Optional[UUID] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


# --- Users ---

class UserCreate(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    phone_number: Optional[str] = Field(default=None, max_length=32)
    role_id: UUID


class UserUpdate(BaseModel):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    email: Optional[EmailStr] = None
    phone_number: Optional[str] = Field(default=None, max_length=32)
    role_id: Optional[UUID] = None
    active: Optional[bool] = None


class UserRoleAssign(BaseModel):
    role_id: UUID


class PasswordChange(BaseModel):
    password: str = Field(..., min_length=6, max_length=128)


class UserResponse(BaseModel):
    id: UUID
    first_name: str
    last_name: str
    email: str
    phone_number: Optional[str] = None
    active: bool
    role: Optional[RoleSummary] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class UserPage(BaseModel):
    total: int
    page: int
    limit: int
    data: List[UserResponse]


class UserRegister(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    confirm_password: str
    phone_number: Optional[str] = Field(default=None, max_length=32)

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


# --- Coaching sessions ---

class AvailabilitySlot(BaseModel):
    start: str = Field(..., min_length=1)
    end: str = Field(..., min_length=1)


class AvailabilityDay(BaseModel):
    day: Weekday
    slots: List[AvailabilitySlot] = Field(default_factory=list)


class CoachingSessionCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1, max_length=1000)
    category: CoachingCategory
    is_free: bool = False
    price: Optional[float] = Field(default=None, ge=0)
    duration: int = Field(..., ge=15)
    sessions: int = Field(default=1, ge=1)
    location: str = Field(..., min_length=1)
    is_online: Optional[bool] = None
    specialties: List[str] = Field(default_factory=list)
    years_of_experience: Optional[int] = Field(default=None, ge=0)
    professional_bio: Optional[str] = Field(default=None, max_length=2000)
    availability: List[AvailabilityDay] = Field(default_factory=list)
    max_participants: int = Field(default=1, ge=1)

    @model_validator(mode="after")
    def price_required_unless_free(self):
        if not self.is_free and self.price is None:
            raise ValueError("Price is required for paid coaching sessions")
        return self


class CoachingSessionUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, min_length=1, max_length=1000)
    category: Optional[CoachingCategory] = None
    is_free: Optional[bool] = None
    price: Optional[float] = Field(default=None, ge=0)
    duration: Optional[int] = Field(default=None, ge=15)
    sessions: Optional[int] = Field(default=None, ge=1)
    location: Optional[str] = Field(default=None, min_length=1)
    is_online: Optional[bool] = None
    specialties: Optional[List[str]] = None
    years_of_experience: Optional[int] = Field(default=None, ge=0)
    professional_bio: Optional[str] = Field(default=None, max_length=2000)
    availability: Optional[List[AvailabilityDay]] = None
    max_participants: Optional[int] = Field(default=None, ge=1)
    active: Optional[bool] = None


class CoachSummary(BaseModel):
    id: UUID
    first_name: str
    last_name: str
    email: str

    model_config = ConfigDict(from_attributes=True)


class CoachingSessionResponse(BaseModel):
    id: UUID
    coach_id: UUID
    coach: Optional[CoachSummary] = None
    title: str
    description: str
    category: str
    is_free: bool
    price: Optional[float] = None
    duration: Optional[int] = None
    sessions: int
    location: str
    is_online: Optional[bool] = None
    specialties: List[str] = Field(default_factory=list)
    years_of_experience: Optional[int] = None
    professional_bio: Optional[str] = None
    availability: List[AvailabilityDay] = Field(default_factory=list)
    max_participants: int
    active: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CoachingSessionPage(BaseModel):
    total: int
    page: int
    limit: int
    data: List[CoachingSessionResponse]


# --- Coaching applications ---

class ApplicationCreate(BaseModel):
    scheduled_date: date
    scheduled_time: str = Field(..., min_length=1)
    notes: Optional[str] = Field(default=None, max_length=500)


class ApplicationStatusUpdate(BaseModel):
    # Enum membership is checked by the booking service (ValidationError names the value).
    status: str = Field(..., min_length=1)


class ApplicationSessionSummary(BaseModel):
    id: UUID
    title: str
    category: str
    duration: Optional[int] = None
    is_free: bool
    price: Optional[float] = None
    coach: Optional[CoachSummary] = None

    model_config = ConfigDict(from_attributes=True)


class ApplicationResponse(BaseModel):
    id: UUID
    session_id: UUID
    applicant_id: UUID
    scheduled_date: date
    scheduled_time: str
    status: str
    notes: Optional[str] = None
    payment_status: str
    payment_amount: float
    payment_date: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ApplicationDetailResponse(ApplicationResponse):
    session: Optional[ApplicationSessionSummary] = None
    applicant: Optional[CoachSummary] = None


# --- Access control ---

class AccessCheckResponse(BaseModel):
    allowed: bool
    resource: str
    action: str
    role: Optional[str] = None
    reason: Optional[str] = None
