import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import EmailStr, Field, field_validator
from pymongo.database import Database

import seed
from database import create_document, get_db, serialize_doc, to_object_id
from responses import ok
from schemas import Admin, AdminRole, CamelModel
from security import (
    AdminContext,
    create_admin_token,
    get_current_admin,
    get_optional_admin,
    hash_password,
    verify_password,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


class LoginBody(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def lower(cls, v: str) -> str:
        return v.lower()


class AdminCreateBody(LoginBody):
    password: str = Field(..., min_length=6)
    role: AdminRole = "admin"


def admin_profile(admin: dict) -> dict:
    return {"id": str(admin["_id"]), "email": admin["email"], "role": admin.get("role", "admin")}


@router.post("/login")
def admin_login(body: LoginBody, database: Database = Depends(get_db)):
    admin = database["admin"].find_one({"email": body.email})
    if not admin or not verify_password(body.password, admin.get("passwordHash", "")):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    token = create_admin_token(str(admin["_id"]), admin.get("role", "admin"))
    logger.info("Admin %s logged in", admin["email"])
    return ok({"admin": admin_profile(admin), "token": token}, message="Login successful")


@router.post("/create", status_code=201)
def create_admin(
    body: AdminCreateBody,
    caller: Optional[AdminContext] = Depends(get_optional_admin),
    database: Database = Depends(get_db),
):
    # open for the very first admin, superadmin only afterwards
    if database["admin"].count_documents({}) > 0:
        if caller is None:
            raise HTTPException(status_code=401, detail="No authentication token provided")
        if not caller.is_superadmin:
            raise HTTPException(status_code=403, detail="Superadmin only")
    if database["admin"].find_one({"email": body.email}):
        raise HTTPException(status_code=400, detail="Admin with this email already exists")
    admin = Admin(email=body.email, password_hash=hash_password(body.password), role=body.role)
    admin_id = create_document(database, "admin", admin)
    doc = database["admin"].find_one({"_id": to_object_id(admin_id)})
    logger.info("Admin %s created with role %s", body.email, body.role)
    return ok(admin_profile(doc), message="Admin created successfully", status_code=201)


@router.get("/me")
def current_admin(admin: AdminContext = Depends(get_current_admin)):
    return ok(admin.model_dump())


@router.get("/stats")
def admin_stats(admin: AdminContext = Depends(get_current_admin), database: Database = Depends(get_db)):
    return ok({
        "users": database["user"].count_documents({}),
        "stores": database["store"].count_documents({}),
        "medicines": database["medicine"].count_documents({}),
        "orders": database["order"].count_documents({}),
        "pendingOrders": database["order"].count_documents({"status": "Pending"}),
    })


@router.post("/seed")
def seed_data(admin: AdminContext = Depends(get_current_admin), database: Database = Depends(get_db)):
    store = seed.ensure_default_store(database)
    created = seed.ensure_categories(database)
    return ok({"store": serialize_doc(store), "categoriesCreated": created}, message="Seed complete")
