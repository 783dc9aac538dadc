import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

import bcrypt
import jwt
from fastapi import Cookie, Depends, HTTPException, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pymongo.database import Database

import config
from database import get_db, to_object_id

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

NOT_AUTHORIZED = "Not authorized to access this route"


# -------------------- Passwords --------------------

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=config.BCRYPT_ROUNDS)).decode()


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), hashed.encode())
    except ValueError:
        # malformed stored hash
        return False


# -------------------- Tokens --------------------

def create_access_token(user_id: str) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "id": user_id,
        "exp": now + timedelta(minutes=config.JWT_EXPIRE_MINUTES),
        "iat": now,
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALG)


def decode_access_token(token: str) -> str:
    """Return the user id carried by a valid token, raise 401 otherwise."""
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALG])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail=NOT_AUTHORIZED)
    user_id = payload.get("id")
    if not user_id:
        raise HTTPException(status_code=401, detail=NOT_AUTHORIZED)
    return user_id


def set_token_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key="token",
        value=token,
        max_age=config.JWT_EXPIRE_MINUTES * 60,
        httponly=True,
        secure=config.ENVIRONMENT == "production",
    )


def generate_reset_token() -> Tuple[str, str, datetime]:
    """Plaintext token for the email, its SHA-256 for storage, and its expiry."""
    token = secrets.token_hex(20)
    expire = datetime.now(timezone.utc) + timedelta(minutes=config.RESET_TOKEN_EXPIRE_MINUTES)
    return token, hash_reset_token(token), expire


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def reset_token_expired(expire: Optional[datetime]) -> bool:
    if expire is None:
        return True
    # pymongo hands back naive UTC datetimes
    if expire.tzinfo is None:
        expire = expire.replace(tzinfo=timezone.utc)
    return expire <= datetime.now(timezone.utc)


# -------------------- Dependencies --------------------

def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    token_cookie: Optional[str] = Cookie(default=None, alias="token"),
    db: Database = Depends(get_db),
):
    token = credentials.credentials if credentials else token_cookie
    if not token:
        raise HTTPException(status_code=401, detail=NOT_AUTHORIZED)
    user_id = decode_access_token(token)
    try:
        oid = to_object_id(user_id, "user")
    except HTTPException:
        raise HTTPException(status_code=401, detail=NOT_AUTHORIZED)
    user_doc = db["user"].find_one({"_id": oid})
    if not user_doc:
        raise HTTPException(status_code=401, detail=NOT_AUTHORIZED)
    user_doc["_id"] = str(user_doc["_id"])
    return user_doc


def authorize(*roles: str):
    def role_dep(current_user=Depends(get_current_user)):
        if current_user.get("role") not in roles:
            raise HTTPException(
                status_code=403,
                detail=f"User role {current_user.get('role')} is unauthorized to access this route",
            )
        return current_user
    return role_dep


def ensure_owner(doc: dict, current_user: dict, action: str) -> None:
    """Only the owner of ``doc`` or an admin may ``action`` it."""
    if current_user.get("role") == "admin":
        return
    if str(doc.get("user_id")) != str(current_user["_id"]):
        raise HTTPException(
            status_code=403,
            detail=f"User {current_user['_id']} is not authorized to {action}",
        )
