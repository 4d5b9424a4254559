"""
External collaborators behind narrow interfaces.

* ``SMSSender.send_code(phone, code) -> bool``
* ``IdentityProvider.verify_identity_token(token) -> phone``
* ``ImageStore.upload_image(data, content_type) -> url``

Routes get them through the ``get_*`` dependencies below, which tests override.
"""
import logging
import mimetypes
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional
from uuid import uuid4

import gridfs
import jwt
from fastapi import Depends
from pymongo.database import Database

import settings
from database import get_db

logger = logging.getLogger(__name__)


class IdentityVerificationError(Exception):
    pass


def normalize_phone(phone: str) -> str:
    """Keep the last 10 digits, dropping a country code like +91."""
    return re.sub(r"\D", "", phone or "")[-10:]


# ----------------------- SMS -----------------------
class SMSSender(ABC):
    @abstractmethod
    def send_code(self, phone: str, code: str) -> bool:
        raise NotImplementedError


class ConsoleSMSSender(SMSSender):
    """Logs the code instead of texting it. Phone auth SMS is sent client side in production."""

    def send_code(self, phone: str, code: str) -> bool:
        if settings.ENVIRONMENT == "development":
            logger.info("OTP for %s: %s", phone, code)
        else:
            logger.info("OTP issued for %s", phone)
        return True


# ----------------------- Identity -----------------------
class IdentityProvider(ABC):
    @abstractmethod
    def verify_identity_token(self, token: str) -> str:
        raise NotImplementedError


class FirebaseIdentityProvider(IdentityProvider):
    """Verifies Firebase ID tokens against Google's published signing keys."""

    def __init__(self, project_id: str, jwks_url: str = settings.FIREBASE_JWKS_URL):
        self.project_id = project_id
        self._jwks = jwt.PyJWKClient(jwks_url)

    def verify_identity_token(self, token: str) -> str:
        if not self.project_id:
            raise IdentityVerificationError("Identity provider not configured")
        try:
            signing_key = self._jwks.get_signing_key_from_jwt(token)
            claims = jwt.decode(
                token,
                signing_key.key,
                algorithms=["RS256"],
                audience=self.project_id,
                issuer=f"https://securetoken.google.com/{self.project_id}",
            )
        except jwt.PyJWTError as e:
            raise IdentityVerificationError(f"Invalid identity token: {e}")
        phone = claims.get("phone_number")
        if not phone:
            raise IdentityVerificationError("Identity token carries no phone number")
        return phone


# ----------------------- Images -----------------------
class ImageStore(ABC):
    @abstractmethod
    def upload_image(self, data: bytes, content_type: str) -> str:
        raise NotImplementedError


class LocalImageStore(ImageStore):
    def __init__(self, root: str = settings.UPLOAD_DIR):
        self.root = Path(root)

    def upload_image(self, data: bytes, content_type: str) -> str:
        folder = self.root / "medicines"
        folder.mkdir(parents=True, exist_ok=True)
        ext = mimetypes.guess_extension(content_type) or ".img"
        filename = f"{uuid4().hex}{ext}"
        (folder / filename).write_bytes(data)
        return f"/uploads/medicines/{filename}"


class GridFSImageStore(ImageStore):
    def __init__(self, database: Database):
        self.fs = gridfs.GridFS(database)

    def upload_image(self, data: bytes, content_type: str) -> str:
        file_id = self.fs.put(data, filename=f"medicine-{uuid4().hex}", metadata={"contentType": content_type})
        return f"/api/medicines/images/{file_id}"


# ----------------------- Dependencies -----------------------
_identity_provider: Optional[IdentityProvider] = None


def get_sms_sender() -> SMSSender:
    return ConsoleSMSSender()


def get_identity_provider() -> IdentityProvider:
    global _identity_provider
    # built lazily, the key client caches Google's JWKS between requests
    if _identity_provider is None:
        _identity_provider = FirebaseIdentityProvider(settings.FIREBASE_PROJECT_ID)
    return _identity_provider


def get_image_store(database: Database = Depends(get_db)) -> ImageStore:
    if settings.IMAGE_STORAGE == "gridfs":
        return GridFSImageStore(database)
    return LocalImageStore()
