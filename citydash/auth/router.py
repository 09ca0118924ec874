from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional

from .schemas import (
    SignupRequest,
    LoginRequest,
    TokenPairResponse,
    RefreshTokenRequest,
    AccessTokenResponse,
    MessageResponse,
    ForgotPasswordRequest,
    VerifyOtpRequest,
    VerifyOtpResponse,
    ResetPasswordRequest,
    UpdatePasswordRequest,
)
from .schemas_mfa import MfaChallengeRequest, VerifyMfaRequest, MfaStatusResponse
from .schemas_session import SessionInfo
from .service import AuthService
from .mfa_service import MFAService
from .exceptions import InvalidRefreshToken
from .dependencies import (
    security,
    get_client_ip,
    get_user_agent,
    get_token_payload,
    get_current_user,
    rate_limit_login,
    rate_limit_password_reset,
    rate_limit_mfa_challenge,
    rate_limit_otp_verify,
)
from ..models.user import User
from ..services.otp_service import get_code_delivery
from ..database import get_db

router = APIRouter(prefix="/localauth", tags=["localauth"])


@router.post("/signup", response_model=TokenPairResponse, status_code=status.HTTP_201_CREATED)
def signup(
    signup_data: SignupRequest,
    request: Request,
    db: Session = Depends(get_db)
):
    """Register a new user and return a token pair for the signup IP."""
    auth_service = AuthService(db)
    return auth_service.signup(signup_data, get_client_ip(request), get_user_agent(request))


@router.post("/login", response_model=TokenPairResponse, dependencies=[Depends(rate_limit_login)])
def login(
    login_data: LoginRequest,
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Login with email and password.

    - MFA-enabled accounts must send `mfaToken`
    - A login from an IP that is not whitelisted locks the account until
      `/localauth/verify-mfa` succeeds, unless a valid `mfaToken` is sent
    """
    auth_service = AuthService(db)
    return auth_service.login(login_data, get_client_ip(request), get_user_agent(request))


@router.get("/getSessions", response_model=List[SessionInfo])
def get_sessions(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Active sessions of the current user, most recent first."""
    return AuthService(db).get_sessions(current_user.id)


@router.post("/refreshToken", response_model=AccessTokenResponse)
def refresh_token(
    body: Optional[RefreshTokenRequest] = None,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
):
    """Exchange a refresh token (body `token`, or the bearer header) for a new access token."""
    token = body.token if body and body.token else None
    if token is None and credentials is not None:
        token = credentials.credentials
    if not token:
        raise InvalidRefreshToken()

    return {"accessToken": AuthService(db).refresh_token(token)}


@router.post("/activateMFA")
def activate_mfa(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Enable MFA and return the enrollment QR code.

    Returns a PNG image that can be scanned by authenticator apps. Calling
    it again returns the same image.
    """
    png = MFAService(db).activate_mfa(current_user)
    return Response(
        content=png,
        media_type="image/png",
        headers={"Content-Disposition": "inline; filename=mfa_qr_code.png"}
    )


@router.post("/deactivateMFA", response_model=MfaStatusResponse)
def deactivate_mfa(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    MFAService(db).deactivate_mfa(current_user)
    return {"message": "MFA disabled", "enabled": False}


@router.post("/mfa-challenge", response_model=MessageResponse, dependencies=[Depends(rate_limit_mfa_challenge)])
def mfa_challenge(
    challenge: MfaChallengeRequest,
    request: Request,
    db: Session = Depends(get_db),
    code_delivery=Depends(get_code_delivery)
):
    """Start the new-IP unlock flow. Sends a code to users without an authenticator app."""
    auth_service = AuthService(db, code_delivery)
    message = auth_service.request_mfa_challenge(challenge.email, challenge.password, get_client_ip(request))
    return {"message": message}


@router.post("/verify-mfa", response_model=MessageResponse, dependencies=[Depends(rate_limit_mfa_challenge)])
def verify_mfa(
    verify_data: VerifyMfaRequest,
    request: Request,
    db: Session = Depends(get_db),
    code_delivery=Depends(get_code_delivery)
):
    """Answer the new-IP challenge; on success the IP is whitelisted and the account unlocked."""
    auth_service = AuthService(db, code_delivery)
    message = auth_service.verify_mfa_challenge(
        verify_data.email,
        verify_data.password,
        verify_data.mfa_token,
        get_client_ip(request)
    )
    return {"message": message}


@router.get("/logout", response_model=MessageResponse)
def logout(
    payload: Dict[str, Any] = Depends(get_token_payload),
    db: Session = Depends(get_db)
):
    """Revoke the session behind the presented access token."""
    AuthService(db).logout(payload["sid"])
    return {"message": "Logged out successfully"}


@router.post("/forgot-password", response_model=MessageResponse, dependencies=[Depends(rate_limit_password_reset)])
def forgot_password(
    forgot_data: ForgotPasswordRequest,
    db: Session = Depends(get_db),
    code_delivery=Depends(get_code_delivery)
):
    auth_service = AuthService(db, code_delivery)
    return {"message": auth_service.initiate_forgot_password(forgot_data.email)}


@router.post("/verify-otp", response_model=VerifyOtpResponse, dependencies=[Depends(rate_limit_otp_verify)])
def verify_otp(
    otp_data: VerifyOtpRequest,
    db: Session = Depends(get_db)
):
    is_valid = AuthService(db).verify_otp(otp_data.email, otp_data.otp)
    return {"message": "OTP verified", "isValid": is_valid}


@router.post("/reset-password", response_model=MessageResponse, dependencies=[Depends(rate_limit_otp_verify)])
def reset_password(
    reset_data: ResetPasswordRequest,
    db: Session = Depends(get_db)
):
    """Set a new password with a reset code. Signs the user out of every session."""
    AuthService(db).reset_password(reset_data)
    return {"message": "Password has been reset"}


@router.post("/update-password", response_model=MessageResponse)
def update_password(
    update_data: UpdatePasswordRequest,
    current_user: User = Depends(get_current_user),
    payload: Dict[str, Any] = Depends(get_token_payload),
    db: Session = Depends(get_db)
):
    """Change the password; every other session is signed out."""
    AuthService(db).update_password(current_user, update_data, payload["sid"])
    return {"message": "Password updated successfully"}
