"""
API v1 routes.

Defines REST endpoints for the signup stage-progression API.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from src.api.dependencies import get_current_claims, get_registration_service
from src.api.models import (
    AdvanceStageRequest,
    CompleteResponse,
    ErrorResponse,
    IdentityAvailabilityResponse,
    ProfileUpdateRequest,
    ProfileUpdateResponse,
    PublicUser,
    RegisterRequest,
    RegisterResponse,
    SignupStatusRequest,
    SignupStatusResponse,
    StageResponse,
)
from src.domain.exceptions import (
    AccountNotFound,
    InvalidToken,
    OnboardingError,
    StageConflict,
    StageRegression,
)
from src.domain.ports import TokenClaims
from src.domain.registration import RegistrationService, StageView

router = APIRouter(tags=["v1"])

_STATUS_BY_ERROR: dict[type[OnboardingError], int] = {
    AccountNotFound: status.HTTP_404_NOT_FOUND,
    InvalidToken: status.HTTP_401_UNAUTHORIZED,
    StageConflict: status.HTTP_409_CONFLICT,
}


def _http_error(exc: OnboardingError) -> HTTPException:
    """Translate a domain error into its HTTP status with a stable reason."""
    status_code = next(
        (code for error_type, code in _STATUS_BY_ERROR.items() if isinstance(exc, error_type)),
        status.HTTP_400_BAD_REQUEST,
    )
    detail = {"reason": exc.reason, "message": exc.message}
    if isinstance(exc, StageRegression) and exc.current is not None:
        detail["current"] = exc.current
    return HTTPException(status_code=status_code, detail=detail)


def _stage_response(view: StageView) -> StageResponse:
    return StageResponse(
        stage=view.stage.value,
        next_stage=view.next_stage.value if view.next_stage is not None else None,
    )


@router.post(
    "/registrations",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid input or user already exists"},
    },
    summary="Start a registration",
    description="Create an account at the payment stage. An abandoned, incomplete "
    "registration holding the same email, handle or phone is replaced.",
)
async def start_registration(
    request_data: RegisterRequest,
    service: RegistrationService = Depends(get_registration_service),
) -> RegisterResponse:
    try:
        result = service.start_registration(
            email=request_data.email,
            handle=request_data.handle,
            phone=request_data.phone,
            password=request_data.password,
            terms_accepted=request_data.terms_accepted,
            full_name=request_data.full_name,
            company_name=request_data.company_name,
            industry=request_data.industry,
        )
    except OnboardingError as exc:
        raise _http_error(exc) from None
    return RegisterResponse(account_id=result.account_id, stage=result.stage.value, token=result.token)


@router.get(
    "/identity-availability",
    response_model=IdentityAvailabilityResponse,
    responses={400: {"model": ErrorResponse, "description": "Unknown field or missing value"}},
    summary="Check whether a username, email or phone is free",
    description="Usernames and emails are compared case-insensitively, phone "
    "numbers by their digits only.",
)
async def check_identity_availability(
    field: str | None = None,
    value: str | None = None,
    service: RegistrationService = Depends(get_registration_service),
) -> IdentityAvailabilityResponse:
    try:
        unique = service.check_identity_available(field, value)
    except OnboardingError as exc:
        raise _http_error(exc) from None
    return IdentityAvailabilityResponse(unique=unique)


@router.get(
    "/accounts/{email}/stage",
    response_model=StageResponse,
    responses={404: {"model": ErrorResponse, "description": "Account not found"}},
    summary="Get the current signup stage",
)
async def get_stage(
    email: str,
    service: RegistrationService = Depends(get_registration_service),
) -> StageResponse:
    try:
        view = service.get_stage(email)
    except OnboardingError as exc:
        raise _http_error(exc) from None
    return _stage_response(view)


@router.post(
    "/accounts/{email}/stage",
    response_model=StageResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid stage or regression"},
        404: {"model": ErrorResponse, "description": "Account not found"},
        409: {"model": ErrorResponse, "description": "Concurrent stage change"},
    },
    summary="Complete the current signup stage",
    description="Submitting the current stage advances to the next one. Completing "
    "the payment stage with a payment reference also records the payment.",
)
async def advance_stage(
    email: str,
    request_data: AdvanceStageRequest,
    service: RegistrationService = Depends(get_registration_service),
) -> StageResponse:
    try:
        view = service.advance_stage(
            email,
            request_data.target_stage,
            payment_ref=request_data.payment_ref,
            subscription_ref=request_data.subscription_ref,
        )
    except OnboardingError as exc:
        raise _http_error(exc) from None
    return _stage_response(view)


@router.patch(
    "/signup-status",
    response_model=SignupStatusResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Regression or signup not started"},
        401: {"model": ErrorResponse, "description": "Missing or invalid token"},
    },
    summary="Move the signup status forward",
)
async def update_signup_status(
    request_data: SignupStatusRequest,
    claims: TokenClaims = Depends(get_current_claims),
    service: RegistrationService = Depends(get_registration_service),
) -> SignupStatusResponse:
    try:
        new_status = service.advance_status(claims.account_id, request_data.target_status)
    except OnboardingError as exc:
        raise _http_error(exc) from None
    return SignupStatusResponse(status=new_status.value)


@router.patch(
    "/accounts/{email}/profile",
    response_model=ProfileUpdateResponse,
    responses={
        400: {"model": ErrorResponse, "description": "No recognized profile field"},
        404: {"model": ErrorResponse, "description": "Account not found"},
    },
    summary="Complete the signup profile",
)
async def update_profile(
    email: str,
    request_data: ProfileUpdateRequest,
    service: RegistrationService = Depends(get_registration_service),
) -> ProfileUpdateResponse:
    try:
        service.update_profile(email, request_data.model_dump(exclude_unset=True))
    except OnboardingError as exc:
        raise _http_error(exc) from None
    return ProfileUpdateResponse(success=True)


@router.post(
    "/accounts/{email}/complete",
    response_model=CompleteResponse,
    responses={404: {"model": ErrorResponse, "description": "Account not found"}},
    summary="Complete the registration",
    description="Marks the account ready and returns a session token.",
)
async def complete_registration(
    email: str,
    service: RegistrationService = Depends(get_registration_service),
) -> CompleteResponse:
    try:
        result = service.complete_registration(email)
    except OnboardingError as exc:
        raise _http_error(exc) from None
    account = result.account
    return CompleteResponse(
        token=result.token,
        user=PublicUser(
            id=account.id,
            email=account.email,
            full_name=account.full_name,
            role=account.role,
        ),
    )
