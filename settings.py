import os


def _flag(name: str, default: str = "true") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
PORT = int(os.getenv("PORT", 8000))

# ----------------------- Database -----------------------
DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

# ----------------------- Tokens -----------------------
JWT_SECRET = os.getenv("JWT_SECRET", "devsecret")
JWT_REFRESH_SECRET = os.getenv("JWT_REFRESH_SECRET", "devrefreshsecret")
JWT_ALGO = "HS256"
JWT_EXPIRES_DAYS = int(os.getenv("JWT_EXPIRES_DAYS", "7"))
JWT_REFRESH_EXPIRES_DAYS = int(os.getenv("JWT_REFRESH_EXPIRES_DAYS", "30"))

# ----------------------- Phone login -----------------------
OTP_LOGIN_ENABLED = _flag("OTP_LOGIN_ENABLED")
IDENTITY_LOGIN_ENABLED = _flag("IDENTITY_LOGIN_ENABLED")
OTP_TTL_SECONDS = 10 * 60
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID", "")
FIREBASE_JWKS_URL = os.getenv(
    "FIREBASE_JWKS_URL",
    "https://www.googleapis.com/service_accounts/v1/jwk/securetoken@system.gserviceaccount.com",
)

# ----------------------- Stores -----------------------
DEFAULT_STORE_ID = os.getenv("DEFAULT_STORE_ID")
DEFAULT_STORE_NAME = os.getenv("DEFAULT_STORE_NAME", "ABCD Medical Store")
DEFAULT_SEARCH_RADIUS_KM = 50

# ----------------------- Uploads -----------------------
IMAGE_STORAGE = os.getenv("IMAGE_STORAGE", "local")  # "local" or "gridfs"
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
MAX_IMAGE_BYTES = 5 * 1024 * 1024

# ----------------------- Bootstrap admin -----------------------
BOOTSTRAP_ADMIN_EMAIL = os.getenv("BOOTSTRAP_ADMIN_EMAIL")
BOOTSTRAP_ADMIN_PASSWORD = os.getenv("BOOTSTRAP_ADMIN_PASSWORD")
