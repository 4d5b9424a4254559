import logging
import re
import secrets
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import field_validator
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

import settings
from database import create_document, get_db, to_object_id, utcnow
from providers import (
    IdentityProvider,
    IdentityVerificationError,
    SMSSender,
    get_identity_provider,
    get_sms_sender,
    normalize_phone,
)
from responses import ok
from schemas import MOBILE_PATTERN, CamelModel, GeoPoint, Otp, User
from security import (
    UserContext,
    create_access_token,
    create_refresh_token,
    decode_token,
    get_current_user,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


# ----------------------- Models -----------------------
class SendOtpBody(CamelModel):
    mobile_number: str

    @field_validator("mobile_number")
    @classmethod
    def ten_digits(cls, v: str) -> str:
        v = v.strip()
        if not re.match(MOBILE_PATTERN, v):
            raise ValueError("Invalid mobile number. Must be 10 digits.")
        return v


class VerifyOtpBody(SendOtpBody):
    otp: str


class VerifyIdentityBody(CamelModel):
    id_token: str
    mobile_number: Optional[str] = None


class RefreshBody(CamelModel):
    refresh_token: Optional[str] = None


class LocationBody(CamelModel):
    latitude: float
    longitude: float


# ----------------------- Helpers -----------------------
def generate_otp() -> str:
    return str(100000 + secrets.randbelow(900000))


def user_profile(user: dict) -> dict:
    return {
        "id": str(user["_id"]),
        "mobileNumber": user["mobileNumber"],
        "location": user.get("location"),
    }


def find_or_create_user(database: Database, mobile_number: str) -> dict:
    user = database["user"].find_one({"mobileNumber": mobile_number})
    if user:
        return user
    try:
        user_id = create_document(database, "user", User(mobile_number=mobile_number))
    except DuplicateKeyError:
        # created by a concurrent login for the same number
        return database["user"].find_one({"mobileNumber": mobile_number})
    logger.info("Registered new user %s", user_id)
    return database["user"].find_one({"_id": to_object_id(user_id)})


def issue_session(database: Database, user: dict) -> dict:
    """Mint an access/refresh pair and remember the refresh token on the user."""
    user_id = str(user["_id"])
    access_token = create_access_token(user_id)
    refresh_token = create_refresh_token(user_id)
    database["user"].update_one(
        {"_id": user["_id"]},
        {"$set": {"refreshToken": refresh_token, "updatedAt": utcnow()}},
    )
    return {"user": user_profile(user), "accessToken": access_token, "refreshToken": refresh_token}


# ----------------------- OTP login -----------------------
@router.post("/send-otp")
def send_otp(body: SendOtpBody, database: Database = Depends(get_db), sms: SMSSender = Depends(get_sms_sender)):
    if not settings.OTP_LOGIN_ENABLED:
        raise HTTPException(status_code=404, detail="OTP login is disabled")
    code = generate_otp()
    otp_id = create_document(
        database,
        "otp",
        Otp(
            mobile_number=body.mobile_number,
            otp=code,
            expires_at=utcnow() + timedelta(seconds=settings.OTP_TTL_SECONDS),
        ),
    )
    if not sms.send_code(body.mobile_number, code):
        database["otp"].delete_one({"_id": to_object_id(otp_id)})
        raise HTTPException(status_code=500, detail="Failed to send OTP. Please try again.")
    return ok(message="OTP sent successfully", expiresIn=settings.OTP_TTL_SECONDS)


@router.post("/verify-otp")
def verify_otp(body: VerifyOtpBody, database: Database = Depends(get_db)):
    if not settings.OTP_LOGIN_ENABLED:
        raise HTTPException(status_code=404, detail="OTP login is disabled")
    record = database["otp"].find_one(
        {
            "mobileNumber": body.mobile_number,
            "otp": body.otp,
            "verified": False,
            "expiresAt": {"$gt": utcnow()},
        },
        sort=[("createdAt", -1)],
    )
    if not record:
        raise HTTPException(status_code=400, detail="Invalid or expired OTP")
    database["otp"].update_one({"_id": record["_id"]}, {"$set": {"verified": True, "updatedAt": utcnow()}})

    user = find_or_create_user(database, body.mobile_number)
    return ok(issue_session(database, user), message="Login successful")


# ----------------------- Identity token login -----------------------
@router.post("/verify-firebase-token")
def verify_identity_token(
    body: VerifyIdentityBody,
    database: Database = Depends(get_db),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    if not settings.IDENTITY_LOGIN_ENABLED:
        raise HTTPException(status_code=404, detail="Identity token login is disabled")
    try:
        phone = normalize_phone(provider.verify_identity_token(body.id_token))
    except IdentityVerificationError as e:
        logger.warning("Identity token rejected: %s", e)
        raise HTTPException(status_code=401, detail="Invalid or expired identity token")
    if not re.match(MOBILE_PATTERN, phone):
        raise HTTPException(status_code=401, detail="Identity token carries an invalid phone number")
    if body.mobile_number and normalize_phone(body.mobile_number) != phone:
        raise HTTPException(status_code=401, detail="Phone number does not match identity token")

    user = find_or_create_user(database, phone)
    return ok(issue_session(database, user), message="Login successful")


# ----------------------- Session -----------------------
@router.post("/refresh-token")
def refresh_token(body: RefreshBody, database: Database = Depends(get_db)):
    if not body.refresh_token:
        raise HTTPException(status_code=400, detail="Refresh token is required")
    payload = decode_token(body.refresh_token, settings.JWT_REFRESH_SECRET)
    user_id = payload.get("userId")
    user = database["user"].find_one({"_id": to_object_id(user_id)}) if user_id else None
    if not user or user.get("refreshToken") != body.refresh_token:
        raise HTTPException(status_code=401, detail="Invalid refresh token")
    return ok({"accessToken": create_access_token(str(user["_id"]))})


@router.post("/logout")
def logout(user: UserContext = Depends(get_current_user), database: Database = Depends(get_db)):
    database["user"].update_one(
        {"_id": to_object_id(user.id)},
        {"$unset": {"refreshToken": ""}, "$set": {"updatedAt": utcnow()}},
    )
    return ok(message="Logged out")


@router.get("/me")
def me(user: UserContext = Depends(get_current_user)):
    return ok({"id": user.id, "mobileNumber": user.mobile_number, "location": user.location})


@router.post("/update-location")
def update_location(
    body: LocationBody,
    user: UserContext = Depends(get_current_user),
    database: Database = Depends(get_db),
):
    if not (-90 <= body.latitude <= 90 and -180 <= body.longitude <= 180):
        raise HTTPException(status_code=400, detail="Invalid coordinates")
    location = GeoPoint.from_lat_lng(body.latitude, body.longitude).model_dump()
    database["user"].update_one(
        {"_id": to_object_id(user.id)},
        {"$set": {"location": location, "updatedAt": utcnow()}},
    )
    return ok({"location": location}, message="Location updated successfully")
