"""
API v1 routes.

Defines REST endpoints for the credential lifecycle API. Each endpoint
calls one AccountLifecycle operation and maps a Failure result to an
HTTP error through _raise_for_failure().
"""

from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, status

from src.api.dependencies import get_current_claims, get_lifecycle
from src.api.models import (
    ErrorResponse,
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RefreshTokenRequest,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
    TokenResponse,
    TwoFactorSetupResponse,
    TwoFactorVerifyRequest,
    VerifyEmailRequest,
)
from src.domain.exceptions import ErrorKind
from src.domain.lifecycle import AccountLifecycle
from src.domain.models import AccessClaims, AuthTokens
from src.domain.results import Failure

router = APIRouter(tags=["v1"])

_STATUS_BY_ERROR = {
    ErrorKind.VALIDATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.DUPLICATE_ACCOUNT: status.HTTP_409_CONFLICT,
    ErrorKind.INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.EMAIL_NOT_VERIFIED: status.HTTP_403_FORBIDDEN,
    ErrorKind.INVALID_TWO_FACTOR_CODE: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.INVALID_TOKEN: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.CONCURRENCY_CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.DEPENDENCY: status.HTTP_503_SERVICE_UNAVAILABLE,
}

# Details that must not reveal more than the error kind
_GENERIC_DETAIL = {
    ErrorKind.DUPLICATE_ACCOUNT: "Registration failed",
    ErrorKind.DEPENDENCY: "Service temporarily unavailable",
}

FORGOT_PASSWORD_MESSAGE = "If the email exists, a password reset link has been sent."


def _raise_for_failure(failure: Failure) -> NoReturn:
    raise HTTPException(
        status_code=_STATUS_BY_ERROR[failure.error],
        detail=_GENERIC_DETAIL.get(failure.error, failure.detail),
    )


def _token_response(tokens: AuthTokens) -> TokenResponse:
    return TokenResponse(
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        access_token_expires_at=tokens.access_token_expires_at,
        refresh_token_expires_at=tokens.refresh_token_expires_at,
    )


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        409: {"model": ErrorResponse, "description": "Email already registered"},
        422: {"description": "Validation error"},
    },
    summary="Register a new user",
    description="Create an unverified account. A verification link is sent to the email.",
)
async def register(
    request_data: RegisterRequest,
    lifecycle: AccountLifecycle = Depends(get_lifecycle),
) -> RegisterResponse:
    result = await lifecycle.register(
        request_data.first_name,
        request_data.last_name,
        request_data.email,
        request_data.password,
        request_data.confirm_password,
    )
    if isinstance(result, Failure):
        _raise_for_failure(result)
    return RegisterResponse(
        message="Registration successful. Please check your email to verify your account.",
        email=result.value.email,
    )


@router.post(
    "/verify-email",
    response_model=MessageResponse,
    responses={401: {"model": ErrorResponse, "description": "Invalid or expired token"}},
    summary="Verify email address",
)
async def verify_email(
    request_data: VerifyEmailRequest,
    lifecycle: AccountLifecycle = Depends(get_lifecycle),
) -> MessageResponse:
    result = await lifecycle.verify_email(request_data.email, request_data.token)
    if isinstance(result, Failure):
        _raise_for_failure(result)
    return MessageResponse(message="Email verified successfully")


@router.post(
    "/login",
    response_model=LoginResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid credentials or 2FA code"},
        403: {"model": ErrorResponse, "description": "Email not verified"},
    },
    summary="Log in",
    description="Returns tokens, or requires_two_factor=true when a TOTP code is needed.",
)
async def login(
    request_data: LoginRequest,
    lifecycle: AccountLifecycle = Depends(get_lifecycle),
) -> LoginResponse:
    result = await lifecycle.login(
        request_data.email, request_data.password, request_data.two_factor_code
    )
    if isinstance(result, Failure):
        _raise_for_failure(result)
    if result.value.requires_two_factor:
        return LoginResponse(message="2FA code required", requires_two_factor=True)
    return LoginResponse(message="Login successful", tokens=_token_response(result.value.tokens))


@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    summary="Request a password reset link",
    description="Always returns the same response, whether or not the email is registered.",
)
async def forgot_password(
    request_data: ForgotPasswordRequest,
    lifecycle: AccountLifecycle = Depends(get_lifecycle),
) -> MessageResponse:
    result = await lifecycle.request_password_reset(request_data.email)
    if isinstance(result, Failure):
        _raise_for_failure(result)
    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    responses={401: {"model": ErrorResponse, "description": "Invalid or expired token"}},
    summary="Reset password with a reset token",
)
async def reset_password(
    request_data: ResetPasswordRequest,
    lifecycle: AccountLifecycle = Depends(get_lifecycle),
) -> MessageResponse:
    result = await lifecycle.reset_password(
        request_data.email,
        request_data.token,
        request_data.new_password,
        request_data.confirm_new_password,
    )
    if isinstance(result, Failure):
        _raise_for_failure(result)
    return MessageResponse(message="Password reset successful")


@router.post(
    "/2fa/setup",
    response_model=TwoFactorSetupResponse,
    responses={401: {"model": ErrorResponse, "description": "Not authenticated"}},
    summary="Start two-factor enrolment",
)
async def setup_two_factor(
    claims: AccessClaims = Depends(get_current_claims),
    lifecycle: AccountLifecycle = Depends(get_lifecycle),
) -> TwoFactorSetupResponse:
    result = await lifecycle.setup_two_factor(claims.account_id)
    if isinstance(result, Failure):
        _raise_for_failure(result)
    return TwoFactorSetupResponse(
        secret_key=result.value.secret,
        qr_code_url=result.value.provisioning_uri,
        manual_entry_key=result.value.secret,
    )


@router.post(
    "/2fa/verify",
    response_model=MessageResponse,
    responses={401: {"model": ErrorResponse, "description": "Invalid code or not authenticated"}},
    summary="Confirm two-factor enrolment",
)
async def verify_two_factor(
    request_data: TwoFactorVerifyRequest,
    claims: AccessClaims = Depends(get_current_claims),
    lifecycle: AccountLifecycle = Depends(get_lifecycle),
) -> MessageResponse:
    result = await lifecycle.confirm_two_factor(claims.account_id, request_data.code)
    if isinstance(result, Failure):
        _raise_for_failure(result)
    return MessageResponse(message="2FA setup verified successfully")


@router.post(
    "/refresh-token",
    response_model=TokenResponse,
    responses={401: {"model": ErrorResponse, "description": "Invalid token pair"}},
    summary="Rotate access and refresh tokens",
)
async def refresh_token(
    request_data: RefreshTokenRequest,
    lifecycle: AccountLifecycle = Depends(get_lifecycle),
) -> TokenResponse:
    result = await lifecycle.refresh_token(request_data.token, request_data.refresh_token)
    if isinstance(result, Failure):
        _raise_for_failure(result)
    return _token_response(result.value)


@router.post(
    "/logout",
    response_model=MessageResponse,
    responses={401: {"model": ErrorResponse, "description": "Not authenticated"}},
    summary="Log out",
    description="Revokes the refresh token. Issued access tokens expire naturally.",
)
async def logout(
    claims: AccessClaims = Depends(get_current_claims),
    lifecycle: AccountLifecycle = Depends(get_lifecycle),
) -> MessageResponse:
    result = await lifecycle.logout(claims.account_id)
    if isinstance(result, Failure):
        _raise_for_failure(result)
    return MessageResponse(message="Logged out successfully")
