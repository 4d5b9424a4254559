import hashlib
import hmac
import os
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel
from pymongo.database import Database

import settings
from database import get_db, to_object_id

# auto_error=False so a missing header is a 401 rather than FastAPI's 403
bearer = HTTPBearer(auto_error=False)

PBKDF2_ITERATIONS = 120_000


class UserContext(BaseModel):
    id: str
    mobile_number: str
    location: Optional[dict] = None


class AdminContext(BaseModel):
    id: str
    email: str
    role: str

    @property
    def is_superadmin(self) -> bool:
        return self.role == "superadmin"


# ----------------------- Passwords -----------------------
def hash_password(password: str) -> str:
    salt = os.urandom(16).hex()
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), PBKDF2_ITERATIONS).hex()
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt}${digest}"


def verify_password(password: str, password_hash: str) -> bool:
    try:
        _, iterations, salt, digest = password_hash.split("$")
        iterations = int(iterations)
    except ValueError:
        return False
    candidate = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), iterations).hex()
    return hmac.compare_digest(candidate, digest)


# ----------------------- Tokens -----------------------
def _encode(payload: dict, secret: str, days: int) -> str:
    now = datetime.now(timezone.utc)
    to_encode = {**payload, "iat": now, "exp": now + timedelta(days=days)}
    return jwt.encode(to_encode, secret, algorithm=settings.JWT_ALGO)


def create_access_token(user_id: str) -> str:
    return _encode({"userId": user_id}, settings.JWT_SECRET, settings.JWT_EXPIRES_DAYS)


def create_refresh_token(user_id: str) -> str:
    return _encode({"userId": user_id}, settings.JWT_REFRESH_SECRET, settings.JWT_REFRESH_EXPIRES_DAYS)


def create_admin_token(admin_id: str, role: str) -> str:
    return _encode({"adminId": admin_id, "role": role}, settings.JWT_SECRET, settings.JWT_EXPIRES_DAYS)


def decode_token(token: str, secret: Optional[str] = None) -> dict:
    try:
        return jwt.decode(token, secret or settings.JWT_SECRET, algorithms=[settings.JWT_ALGO])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")


def _bearer_token(credentials: Optional[HTTPAuthorizationCredentials]) -> str:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="No authentication token provided")
    return credentials.credentials


# ----------------------- Request context -----------------------
def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    database: Database = Depends(get_db),
) -> UserContext:
    payload = decode_token(_bearer_token(credentials))
    user_id = payload.get("userId")
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token payload")
    user = database["user"].find_one({"_id": to_object_id(user_id)})
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return UserContext(id=str(user["_id"]), mobile_number=user["mobileNumber"], location=user.get("location"))


def get_current_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    database: Database = Depends(get_db),
) -> AdminContext:
    payload = decode_token(_bearer_token(credentials))
    admin_id = payload.get("adminId")
    if not admin_id:
        raise HTTPException(status_code=401, detail="Invalid token payload")
    admin = database["admin"].find_one({"_id": to_object_id(admin_id)})
    if not admin:
        raise HTTPException(status_code=401, detail="Admin not found")
    return AdminContext(id=str(admin["_id"]), email=admin["email"], role=admin.get("role", "admin"))


def get_optional_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    database: Database = Depends(get_db),
) -> Optional[AdminContext]:
    if credentials is None:
        return None
    return get_current_admin(credentials, database)
