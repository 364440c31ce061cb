"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
Required registration fields are optional at this layer so that a missing
field is reported by the domain as a 400 validation error.
"""

from pydantic import BaseModel, ConfigDict, Field


class RegisterRequest(BaseModel):
    """Request model for starting a registration."""

    email: str | None = Field(None, description="Account email address")
    handle: str | None = Field(
        None, description="Username, 4-30 lowercase letters and digits"
    )
    phone: str | None = Field(None, description="Phone number")
    password: str | None = Field(None, description="Account password")
    terms_accepted: bool = Field(False, description="Legal agreement accepted")
    full_name: str | None = None
    company_name: str | None = None
    industry: str | None = None


class RegisterResponse(BaseModel):
    """Response model for a started registration."""

    account_id: int
    stage: str
    token: str


class StageResponse(BaseModel):
    """Current account stage and the stage that follows it."""

    stage: str
    next_stage: str | None = None


class AdvanceStageRequest(BaseModel):
    """Request model for completing the current account stage."""

    target_stage: str = Field(..., description="Stage being completed")
    payment_ref: str | None = Field(None, description="Payment confirmation reference")
    subscription_ref: str | None = Field(None, description="Subscription reference")


class SignupStatusRequest(BaseModel):
    """Request model for moving the stage tracker status."""

    target_status: str = Field(..., description="started, payment, profile or completed")


class SignupStatusResponse(BaseModel):
    status: str


class ProfileUpdateRequest(BaseModel):
    """Recognized profile fields; unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore")

    full_name: str | None = None
    company_name: str | None = None
    phone_number: str | None = None
    industry: str | None = None
    title: str | None = None
    location: str | None = None
    bio: str | None = None
    linkedin: str | None = None
    website: str | None = None
    twitter: str | None = None
    instagram: str | None = None
    do_follow: str | None = None


class ProfileUpdateResponse(BaseModel):
    success: bool = True


class PublicUser(BaseModel):
    """Minimal public identity projection."""

    id: int
    email: str
    full_name: str
    role: str


class CompleteResponse(BaseModel):
    """Response model for a completed registration."""

    token: str
    user: PublicUser


class ErrorDetail(BaseModel):
    reason: str = Field(..., description="Stable machine-readable error code")
    message: str
    current: str | None = Field(None, description="Current position, on regressions")


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: ErrorDetail


class IdentityAvailabilityResponse(BaseModel):
    """Whether an identity value is free to register."""

    unique: bool
