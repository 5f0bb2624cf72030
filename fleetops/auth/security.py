from datetime import datetime, timedelta, timezone
from typing import Optional
import uuid

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from ..config import settings
from ..services.permissions import Caller, Capability, require


http_bearer = HTTPBearer(auto_error=False)


def create_access_token(user_id: str, role: str, ttl_seconds: int = 3600) -> str:
    """Issue a token the way the upstream auth service does. Used by scripts and tests."""
    now = datetime.now(tz=timezone.utc)
    payload = {
        "sub": str(user_id),
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=ttl_seconds)).timestamp()),
        "jti": str(uuid.uuid4()),
    }
    if settings.jwt_audience:
        payload["aud"] = settings.jwt_audience
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict:
    options = {}
    kwargs = {}
    if settings.jwt_audience:
        kwargs["audience"] = settings.jwt_audience
    else:
        options["verify_aud"] = False
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm], options=options, **kwargs)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")


def get_current_caller(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
) -> Caller:
    if creds is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    payload = decode_token(creds.credentials)
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid subject")
    role = payload.get("role")
    if not role:
        # Some issuers send a list; the first entry is the primary role
        roles = payload.get("roles") or []
        role = roles[0] if roles else ""
    return Caller.for_role(str(user_id), str(role))


def require_capability(capability: Capability):
    def _dep(caller: Caller = Depends(get_current_caller)) -> Caller:
        return require(caller, capability)

    return _dep
