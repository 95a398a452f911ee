import os
import json
import base64
import logging
from datetime import datetime, timedelta
from typing import Optional

import firebase_admin
from firebase_admin import credentials, auth
from fastapi import Depends, HTTPException, Request, status
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from .config import CONFIG
from .database import get_db
from .models import User, UserRole, Captain

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain, hashed):
    return pwd_context.verify(plain, hashed)


def get_password_hash(password):
    return pwd_context.hash(password)


def init_firebase():
    """Initialise the Firebase Admin SDK if credentials are available.

    A base64-encoded service account in FIREBASE_SERVICE_ACCOUNT_BASE64 wins;
    the local JSON key file is the development fallback. Without either,
    Firebase logins are refused but the rest of the API keeps working.
    """
    creds_b64 = os.environ.get("FIREBASE_SERVICE_ACCOUNT_BASE64")
    if creds_b64:
        cred = credentials.Certificate(json.loads(base64.b64decode(creds_b64)))
        logger.info("Firebase credentials decoded from FIREBASE_SERVICE_ACCOUNT_BASE64")
    elif os.path.exists(CONFIG["FIREBASE_SERVICE_ACCOUNT_KEY_PATH"]):
        cred = credentials.Certificate(CONFIG["FIREBASE_SERVICE_ACCOUNT_KEY_PATH"])
        logger.info("Firebase credentials loaded from %s", CONFIG["FIREBASE_SERVICE_ACCOUNT_KEY_PATH"])
    else:
        logger.warning("No Firebase credentials configured; /api/auth/firebase-login is disabled")
        return False

    if not firebase_admin._apps:
        firebase_admin.initialize_app(cred)
        logger.info("Firebase Admin SDK initialized")
    return True


def verify_firebase_token(token: str) -> dict:
    try:
        return auth.verify_id_token(token)
    except (ValueError, auth.InvalidIdTokenError, auth.ExpiredIdTokenError, auth.RevokedIdTokenError) as e:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, f"Invalid Firebase token: {e}")


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=CONFIG["ACCESS_TOKEN_EXPIRE_MINUTES"]))
    to_encode["exp"] = expire
    return jwt.encode(to_encode, CONFIG["SECRET_KEY"], algorithm=CONFIG["ALGORITHM"])


def decode_access_token(token: str) -> Optional[int]:
    try:
        payload = jwt.decode(token, CONFIG["SECRET_KEY"], algorithms=[CONFIG["ALGORITHM"]])
    except JWTError:
        return None
    sub = payload.get("sub")
    return int(sub) if sub and str(sub).isdigit() else None


def _token_from_request(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization")
    if header:
        parts = header.split()
        if len(parts) == 2 and parts[0].lower() == "bearer":
            return parts[1]
    return request.cookies.get("access_token")


def get_current_user(request: Request, db: Session = Depends(get_db)) -> Optional[User]:
    token = _token_from_request(request)
    if not token:
        return None
    user_id = decode_access_token(token)
    if user_id is None:
        return None
    return db.query(User).filter(User.id == user_id).first()


def get_current_active_user(user: Optional[User] = Depends(get_current_user)) -> User:
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def require_rider(user: User = Depends(get_current_active_user)) -> User:
    if user.role != UserRole.rider:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Rider account required")
    return user


def require_captain(user: User = Depends(get_current_active_user)) -> Captain:
    if user.role != UserRole.captain or not user.captain:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Captain account required")
    return user.captain
