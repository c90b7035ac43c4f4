"""
Authentication routes under /api/auth.

Registration, email verification, login, password reset, profile and the
two-factor flows. Unauthenticated endpoints are rate limited per client IP.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile

from config import AppSettings
from dependencies import (
    get_auth_service,
    get_current_user,
    get_settings,
    get_storage,
    get_two_factor_service,
)
from infrastructure.storage import LocalFileStorage
from routes.limiter import (
    CODE_VERIFY_LIMIT,
    EMAIL_ACTION_LIMIT,
    LOGIN_LIMIT,
    REGISTER_LIMIT,
    limiter,
)
from routes.uploads import read_upload
from schemas.dto.requests.auth import (
    ConfirmTotpRequest,
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResendCodeRequest,
    ResendVerificationRequest,
    ResetPasswordRequest,
    ToggleTwoFactorRequest,
    VerifyCodeRequest,
)
from schemas.dto.responses.auth import (
    EnableTotpResponse,
    LoginResponse,
    ProfileResponse,
    SessionResponse,
    UserProfileResponse,
)
from schemas.dto.responses.common import ErrorResponse, MessageResponse
from schemas.models.user import UserDoc
from services.auth_service import AuthService, SessionIssued
from services.two_factor_service import TwoFactorService

router = APIRouter(
    prefix="/api/auth",
    tags=["auth"],
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)


def _profile(user: UserDoc, settings: AppSettings) -> UserProfileResponse:
    return UserProfileResponse.from_user(user, settings.backend_url)


@router.post("/register", response_model=MessageResponse)
@limiter.limit(REGISTER_LIMIT)
async def register(
    request: Request,
    body: RegisterRequest,
    auth: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    await auth.register(body.name, body.email, body.password)
    return MessageResponse(message="Verification email sent. Please check your inbox.")


@router.post("/login", response_model=LoginResponse, response_model_exclude_none=True)
@limiter.limit(LOGIN_LIMIT)
async def login(
    request: Request,
    body: LoginRequest,
    auth: AuthService = Depends(get_auth_service),
    settings: AppSettings = Depends(get_settings),
) -> LoginResponse:
    outcome = await auth.login(body.email, body.password)
    if isinstance(outcome, SessionIssued):
        return LoginResponse(
            message="Logged in successfully",
            token=outcome.token,
            user=_profile(outcome.user, settings),
        )
    prompt = {
        "email": "2FA code sent to your email",
        "totp": "Enter your Authenticator App code",
    }[outcome.method.value]
    return LoginResponse(message=prompt, requires_2fa=True, method=outcome.method.value)


@router.post("/forgot-password", response_model=MessageResponse)
@limiter.limit(EMAIL_ACTION_LIMIT)
async def forgot_password(
    request: Request,
    body: ForgotPasswordRequest,
    auth: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    await auth.forgot_password(body.email)
    return MessageResponse(
        message="If an account exists for that email, a reset link has been sent."
    )


@router.post("/reset-password/{token}", response_model=MessageResponse)
@limiter.limit(CODE_VERIFY_LIMIT)
async def reset_password(
    request: Request,
    token: str,
    body: ResetPasswordRequest,
    auth: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    await auth.reset_password(token, body.password)
    return MessageResponse(message="Password has been reset successfully")


@router.get("/verify-email/{token}", response_model=SessionResponse)
async def verify_email(
    token: str,
    auth: AuthService = Depends(get_auth_service),
    settings: AppSettings = Depends(get_settings),
) -> SessionResponse:
    session = await auth.verify_email(token)
    return SessionResponse(
        message="Email verified successfully! You are now logged in.",
        token=session.token,
        user=_profile(session.user, settings),
    )


@router.post("/resend-verification", response_model=MessageResponse)
@limiter.limit(EMAIL_ACTION_LIMIT)
async def resend_verification(
    request: Request,
    body: ResendVerificationRequest,
    auth: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    await auth.resend_verification(body.email)
    return MessageResponse(message="Verification email resent. Please check your inbox.")


@router.get("/profile", response_model=ProfileResponse, response_model_exclude_none=True)
async def get_profile(
    user: UserDoc = Depends(get_current_user),
    auth: AuthService = Depends(get_auth_service),
    settings: AppSettings = Depends(get_settings),
) -> ProfileResponse:
    current = await auth.get_profile(user)
    return ProfileResponse(user=_profile(current, settings))


@router.put("/profile", response_model=ProfileResponse)
async def update_profile(
    name: Optional[str] = Form(None),
    role: Optional[str] = Form(None),
    avatar: Optional[str] = Form(None),
    avatar_file: Optional[UploadFile] = File(None),
    user: UserDoc = Depends(get_current_user),
    auth: AuthService = Depends(get_auth_service),
    settings: AppSettings = Depends(get_settings),
    storage: LocalFileStorage = Depends(get_storage),
) -> ProfileResponse:
    avatar_filename = None
    upload = await read_upload(avatar_file, storage)
    if upload is not None:
        avatar_filename = await storage.save(upload)
    updated = await auth.update_profile(
        user, name=name, role=role, avatar=avatar, avatar_filename=avatar_filename
    )
    return ProfileResponse(
        message="Profile updated successfully", user=_profile(updated, settings)
    )


# ── Two-factor ───────────────────────────────────────────────────────────────


@router.post("/verify-2fa", response_model=SessionResponse)
@limiter.limit(CODE_VERIFY_LIMIT)
async def verify_two_factor(
    request: Request,
    body: VerifyCodeRequest,
    two_factor: TwoFactorService = Depends(get_two_factor_service),
    settings: AppSettings = Depends(get_settings),
) -> SessionResponse:
    session = await two_factor.verify_email_code(body.email, body.code)
    return SessionResponse(
        message="2FA verified successfully",
        token=session.token,
        user=_profile(session.user, settings),
    )


@router.post("/verify-totp", response_model=SessionResponse)
@limiter.limit(CODE_VERIFY_LIMIT)
async def verify_totp(
    request: Request,
    body: VerifyCodeRequest,
    two_factor: TwoFactorService = Depends(get_two_factor_service),
    settings: AppSettings = Depends(get_settings),
) -> SessionResponse:
    session = await two_factor.verify_totp(body.email, body.code)
    return SessionResponse(
        message="TOTP verified successfully",
        token=session.token,
        user=_profile(session.user, settings),
    )


@router.put("/toggle-2fa", response_model=ProfileResponse)
async def toggle_two_factor(
    body: ToggleTwoFactorRequest,
    user: UserDoc = Depends(get_current_user),
    auth: AuthService = Depends(get_auth_service),
    settings: AppSettings = Depends(get_settings),
) -> ProfileResponse:
    updated = await auth.toggle_2fa(user, body.enable, body.method)
    state = "enabled" if body.enable else "disabled"
    return ProfileResponse(
        message=f"2FA {state} via {updated.two_factor_method.value}",
        user=_profile(updated, settings),
    )


@router.post("/resend-2fa", response_model=MessageResponse)
@limiter.limit(EMAIL_ACTION_LIMIT)
async def resend_two_factor(
    request: Request,
    body: ResendCodeRequest,
    two_factor: TwoFactorService = Depends(get_two_factor_service),
) -> MessageResponse:
    await two_factor.resend_email_code(body.email)
    return MessageResponse(message="A new 2FA code has been sent to your email")


@router.post("/enable-totp", response_model=EnableTotpResponse)
async def enable_totp(
    user: UserDoc = Depends(get_current_user),
    two_factor: TwoFactorService = Depends(get_two_factor_service),
) -> EnableTotpResponse:
    enrollment = await two_factor.enable_totp(user)
    return EnableTotpResponse(
        message="TOTP enabled. Scan this QR code with your authenticator app.",
        qr_code_url=enrollment.qr_code_url,
        otpauth_url=enrollment.otpauth_url,
        secret=enrollment.secret,
    )


@router.post("/confirm-totp", response_model=ProfileResponse)
async def confirm_totp(
    body: ConfirmTotpRequest,
    user: UserDoc = Depends(get_current_user),
    two_factor: TwoFactorService = Depends(get_two_factor_service),
    settings: AppSettings = Depends(get_settings),
) -> ProfileResponse:
    updated = await two_factor.confirm_totp_setup(user, body.code)
    return ProfileResponse(
        message="TOTP setup confirmed successfully!", user=_profile(updated, settings)
    )
