from __future__ import annotations

from typing import Dict, Optional

from fastapi import Header, HTTPException, status
from jose import JWTError, jwt

from app.config import env_bool, get_env

SUPABASE_AUDIENCE = "authenticated"
DEMO_USER = {"sub": "demo-user", "email": "demo@financeflow.local"}


class SupabaseAuthSettings:
    def __init__(self) -> None:
        self.jwt_secret = get_env("SUPABASE_JWT_SECRET", "").strip()
        self.audience = get_env("SUPABASE_JWT_AUDIENCE", SUPABASE_AUDIENCE).strip() or SUPABASE_AUDIENCE
        self.dev_bypass = env_bool("DEV_BYPASS_AUTH", False)


def verify_jwt(authorization: Optional[str]) -> Dict:
    settings = SupabaseAuthSettings()
    if settings.dev_bypass:
        return dict(DEMO_USER)

    if not authorization:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing token")

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token format")

    if not settings.jwt_secret:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token verification is not configured")

    try:
        claims = jwt.decode(
            parts[1],
            settings.jwt_secret,
            algorithms=["HS256"],
            audience=settings.audience,
        )
    except JWTError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc

    if not claims.get("sub"):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token has no subject")
    return claims


def current_user(authorization: Optional[str] = Header(None)) -> Dict:
    return verify_jwt(authorization)
