# routes_auth.py
"""
Authentication routes: register, login (email/password and Google), logout,
password reset, e-mail verification and profile updates.

A successful login returns a bearer token; send it back as
`Authorization: Bearer <token>` on the /api routes.
"""

from typing import Optional

from fastapi import APIRouter, Depends

from pocketplan.deps import bearer_token, get_registry, require_auth_session
from pocketplan.schemas import (
    EmailIn,
    GoogleLoginIn,
    LoginIn,
    ProfilePatch,
    RegisterIn,
    ResendVerificationIn,
    VerifyEmailIn,
)
from pocketplan.services.auth import AuthSession, SessionRegistry

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _login_response(registry: SessionRegistry, session: AuthSession) -> dict:
    return {
        "token": registry.issue(session),
        "user": session.user.to_dict(),
        "state": session.state.value,
    }


@router.post("/register", status_code=201)
def register(payload: RegisterIn, registry: SessionRegistry = Depends(get_registry)):
    session = registry.new_session()
    try:
        result = session.register(payload.name, payload.email, payload.password, payload.confirm)
    finally:
        session.teardown()
    return {
        "needsVerification": result.needs_verification,
        "state": session.state.value,
        "message": "Account created. Please verify your email before signing in.",
    }


@router.post("/login")
def login(payload: LoginIn, registry: SessionRegistry = Depends(get_registry)):
    session = registry.new_session()
    try:
        session.login(payload.email, payload.password)
    except Exception:
        session.teardown()
        raise
    return _login_response(registry, session)


@router.post("/google")
def google_login(payload: GoogleLoginIn, registry: SessionRegistry = Depends(get_registry)):
    session = registry.new_session()
    try:
        session.google_login(payload.model_dump())
    except Exception:
        session.teardown()
        raise
    return _login_response(registry, session)


@router.post("/logout")
def logout(
    token: Optional[str] = Depends(bearer_token),
    registry: SessionRegistry = Depends(get_registry),
):
    if token:
        registry.revoke(token)
    return {"ok": True}


@router.post("/reset-password")
def reset_password(payload: EmailIn, registry: SessionRegistry = Depends(get_registry)):
    session = registry.new_session()
    try:
        session.reset_password(payload.email)
    finally:
        session.teardown()
    return {"ok": True, "message": "Password reset email sent."}


@router.post("/resend-verification")
def resend_verification(payload: ResendVerificationIn, registry: SessionRegistry = Depends(get_registry)):
    session = registry.new_session()
    try:
        session.resend_verification(payload.email, payload.password)
    finally:
        session.teardown()
    return {"ok": True, "message": "Verification email sent. Please check your inbox."}


@router.post("/verify")
def verify_email(payload: VerifyEmailIn, registry: SessionRegistry = Depends(get_registry)):
    user = registry.directory.verify_email(payload.token)
    return {"ok": True, "email": user.email}


@router.get("/me")
def me(session: AuthSession = Depends(require_auth_session)):
    return {"user": session.user.to_dict(), "state": session.state.value}


@router.patch("/me")
def update_me(payload: ProfilePatch, session: AuthSession = Depends(require_auth_session)):
    user = session.update_profile(
        name=payload.name,
        email=payload.email,
        photo_url=payload.photo_url,
        password=payload.password,
        confirm=payload.confirm,
    )
    return {"user": user.to_dict(), "message": "Profile updated successfully."}
