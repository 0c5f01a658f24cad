"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
"""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, model_validator


class RegisterRequest(BaseModel):
    """Request model for user registration."""

    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(
        ..., min_length=8, max_length=72, description="User password (8-72 characters)"
    )
    confirm_password: str

    @model_validator(mode="after")
    def passwords_match(self) -> "RegisterRequest":
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class RegisterResponse(BaseModel):
    """Response model for successful registration."""

    message: str
    email: str


class VerifyEmailRequest(BaseModel):
    email: EmailStr
    token: str = Field(..., min_length=1)


class LoginRequest(BaseModel):
    """Request model for login; two_factor_code only when 2FA is enabled."""

    email: EmailStr
    password: str = Field(..., min_length=1)
    two_factor_code: str | None = Field(
        default=None, pattern=r"^[0-9]{6}$", description="6-digit TOTP code"
    )


class TokenResponse(BaseModel):
    """Access/refresh token pair."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    access_token_expires_at: datetime
    refresh_token_expires_at: datetime


class LoginResponse(BaseModel):
    """
    Response model for login.

    When requires_two_factor is true no tokens are included and the
    client must repeat the login with a TOTP code.
    """

    message: str
    requires_two_factor: bool = False
    tokens: TokenResponse | None = None


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    """Request model for completing a password reset."""

    email: EmailStr
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=72)
    confirm_new_password: str

    @model_validator(mode="after")
    def passwords_match(self) -> "ResetPasswordRequest":
        if self.new_password != self.confirm_new_password:
            raise ValueError("Passwords do not match")
        return self


class TwoFactorSetupResponse(BaseModel):
    """Pending TOTP secret for authenticator enrolment."""

    secret_key: str
    qr_code_url: str
    manual_entry_key: str


class TwoFactorVerifyRequest(BaseModel):
    code: str = Field(..., pattern=r"^[0-9]{6}$", description="6-digit TOTP code")


class RefreshTokenRequest(BaseModel):
    """Expired (or live) access token plus the current refresh token."""

    token: str = Field(..., min_length=1)
    refresh_token: str = Field(..., min_length=1)


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: str
