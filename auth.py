import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pymongo.database import Database

from config import settings
from database import USERS, get_db

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
ADMIN_ROLE = "admin"

# Decoded token payload, at least {"email": ...}
Identity = Dict[str, Any]

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/jwt", auto_error=False)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode.update({"iat": now, "exp": expire})
    return jwt.encode(to_encode, settings.access_token_secret, algorithm=ALGORITHM)


async def get_identity(token: Optional[str] = Depends(oauth2_scheme)) -> Identity:
    """Verify the bearer token and return its decoded payload.

    Missing, malformed, tampered and expired tokens all get the same 401.
    """
    credentials_exception = HTTPException(status_code=401, detail="unauthorized access")
    if not token:
        raise credentials_exception
    try:
        payload = jwt.decode(token, settings.access_token_secret, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.debug("Rejected bearer token: %s", e)
        raise credentials_exception
    return payload


def is_admin(db: Database, email: Optional[str]) -> bool:
    if not email:
        return False
    user = db[USERS].find_one({"email": email})
    return bool(user) and user.get("role") == ADMIN_ROLE


def require_admin(identity: Identity = Depends(get_identity), db: Database = Depends(get_db)) -> Identity:
    """Second guard stage: the caller must hold the admin role.

    Always runs behind get_identity; being reached without an identity is a
    wiring bug, not a client error.
    """
    if identity is None:
        raise RuntimeError("require_admin called without a verified identity")
    if not is_admin(db, identity.get("email")):
        logger.warning("Admin access denied for %s", identity.get("email"))
        raise HTTPException(status_code=403, detail="forbidden access")
    return identity


def ensure_self(identity: Identity, email: str) -> None:
    if identity.get("email") != email:
        logger.warning("Self-access denied: %s requested %s", identity.get("email"), email)
        raise HTTPException(status_code=403, detail="forbidden access")
