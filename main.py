import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

import addresses
import admin
import auth
import categories
import medicines
import orders
import settings
import stores
from database import db, ensure_indexes, utcnow
from responses import error
from seed import ensure_bootstrap_admin

logging.basicConfig(level=settings.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("medstore")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if db is not None:
        ensure_indexes(db)
        ensure_bootstrap_admin(db)
    logger.info("Medical Store API ready (%s)", settings.ENVIRONMENT)
    yield


app = FastAPI(title="Medical Store API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ----------------------- Request logging -----------------------
@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    logger.info(
        "%s %s -> %s (%.1f ms, auth %s)",
        request.method,
        request.url.path,
        response.status_code,
        (time.perf_counter() - started) * 1000,
        "present" if request.headers.get("authorization") else "missing",
    )
    return response


# ----------------------- Errors -----------------------
@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException):
    message = exc.detail
    if exc.status_code == 404 and message == "Not Found":
        message = "Route not found"
    return error(exc.status_code, str(message))


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if not errors:
        return error(400, "Invalid request")
    first = errors[0]
    msg = first.get("msg", "Invalid value")
    if msg.startswith("Value error, "):
        message = msg[len("Value error, "):]
    else:
        field = first.get("loc", ["body"])[-1]
        message = f"{field}: {msg}"
    return error(400, message)


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    detail = str(exc) if settings.ENVIRONMENT == "development" else None
    return error(500, "Internal server error", error=detail)


# ----------------------- Health -----------------------
@app.get("/")
def root():
    return {"message": "Medical Store API running"}


@app.get("/health")
def health():
    return {"status": "ok", "message": "Medical Store API is running", "timestamp": utcnow().isoformat() + "Z"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": [],
    }
    try:
        if db is not None:
            response["collections"] = db.list_collection_names()[:10]
            response["database"] = "✅ Connected & Working"
            response["connection_status"] = "Connected"
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:80]}"
    return response


# ----------------------- Routes -----------------------
for module in (auth, stores, medicines, orders, addresses, categories):
    app.include_router(module.router)
for module in (stores, medicines, orders, categories):
    app.include_router(module.admin_router)
app.include_router(admin.router)

os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
