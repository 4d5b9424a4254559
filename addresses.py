"""
Delivery addresses.

A user has at most one default address. The rule is kept by the service
functions below rather than by a save hook: every write that can make an
address default clears the flag on the user's other addresses, and deleting
the default promotes the newest remaining address.
"""
import re
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import Field, field_validator
from pymongo.database import Database

from database import create_document, get_db, serialize_doc, to_object_id, utcnow
from responses import ok
from schemas import PINCODE_PATTERN, Address, CamelModel, GeoPoint
from security import UserContext, get_current_user

router = APIRouter(prefix="/api/addresses", tags=["addresses"])

NEWEST_FIRST = [("createdAt", -1), ("_id", -1)]


def _check_pincode(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip()
    if not re.match(PINCODE_PATTERN, v):
        raise ValueError("Invalid pincode format")
    return v


class AddressCreateBody(CamelModel):
    name: str = Field(..., min_length=1, max_length=50)
    full_name: str = Field(..., min_length=1, max_length=100)
    phone_number: str = Field(..., min_length=1, max_length=15)
    address_line1: str = Field(..., min_length=1, max_length=200)
    address_line2: Optional[str] = Field(None, max_length=200)
    landmark: str = Field(..., min_length=1, max_length=100)
    pincode: str
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    is_default: bool = False

    @field_validator("pincode")
    @classmethod
    def valid_pincode(cls, v):
        return _check_pincode(v)


class AddressUpdateBody(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    full_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone_number: Optional[str] = Field(None, min_length=1, max_length=15)
    address_line1: Optional[str] = Field(None, min_length=1, max_length=200)
    address_line2: Optional[str] = Field(None, max_length=200)
    landmark: Optional[str] = Field(None, min_length=1, max_length=100)
    pincode: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)

    @field_validator("pincode")
    @classmethod
    def valid_pincode(cls, v):
        return _check_pincode(v)


# ----------------------- Service -----------------------
def _owned(database: Database, user_id: str, address_id: str) -> dict:
    address = database["address"].find_one({"_id": to_object_id(address_id), "user": user_id})
    if not address:
        raise HTTPException(status_code=404, detail="Address not found")
    return address


def _clear_other_defaults(database: Database, user_id: str, keep_id) -> None:
    database["address"].update_many(
        {"user": user_id, "_id": {"$ne": keep_id}, "isDefault": True},
        {"$set": {"isDefault": False, "updatedAt": utcnow()}},
    )


def list_addresses(database: Database, user_id: str) -> List[dict]:
    cursor = database["address"].find({"user": user_id}).sort([("isDefault", -1)] + NEWEST_FIRST)
    return list(cursor)


def get_default_address(database: Database, user_id: str) -> Optional[dict]:
    return database["address"].find_one({"user": user_id, "isDefault": True})


def create_address(database: Database, user_id: str, body: AddressCreateBody) -> dict:
    # a user's first address is always the default
    is_default = body.is_default or database["address"].count_documents({"user": user_id}) == 0
    address = Address(
        user=user_id,
        name=body.name,
        full_name=body.full_name,
        phone_number=body.phone_number,
        address_line1=body.address_line1,
        address_line2=body.address_line2,
        landmark=body.landmark,
        pincode=body.pincode,
        location=GeoPoint.from_lat_lng(body.latitude, body.longitude),
        is_default=is_default,
    )
    new_id = to_object_id(create_document(database, "address", address))
    if is_default:
        _clear_other_defaults(database, user_id, new_id)
    return database["address"].find_one({"_id": new_id})


def update_address(database: Database, user_id: str, address_id: str, body: AddressUpdateBody) -> dict:
    address = _owned(database, user_id, address_id)
    data = body.model_dump(exclude_unset=True, by_alias=True)
    latitude = data.pop("latitude", None)
    longitude = data.pop("longitude", None)
    if latitude is not None and longitude is not None:
        data["location"] = GeoPoint.from_lat_lng(latitude, longitude).model_dump()
    data = {k: v for k, v in data.items() if v is not None or k == "addressLine2"}
    if not data:
        raise HTTPException(status_code=400, detail="No fields to update")
    data["updatedAt"] = utcnow()
    database["address"].update_one({"_id": address["_id"]}, {"$set": data})
    return database["address"].find_one({"_id": address["_id"]})


def set_default_address(database: Database, user_id: str, address_id: str) -> dict:
    address = _owned(database, user_id, address_id)
    _clear_other_defaults(database, user_id, address["_id"])
    database["address"].update_one({"_id": address["_id"]}, {"$set": {"isDefault": True, "updatedAt": utcnow()}})
    return database["address"].find_one({"_id": address["_id"]})


def delete_address(database: Database, user_id: str, address_id: str) -> None:
    address = database["address"].find_one_and_delete({"_id": to_object_id(address_id), "user": user_id})
    if not address:
        raise HTTPException(status_code=404, detail="Address not found")
    if address.get("isDefault"):
        successor = database["address"].find_one({"user": user_id}, sort=NEWEST_FIRST)
        if successor:
            database["address"].update_one(
                {"_id": successor["_id"]},
                {"$set": {"isDefault": True, "updatedAt": utcnow()}},
            )


# ----------------------- Routes -----------------------
@router.get("")
def get_user_addresses(user: UserContext = Depends(get_current_user), database: Database = Depends(get_db)):
    addresses = [serialize_doc(a) for a in list_addresses(database, user.id)]
    return ok(addresses, count=len(addresses))


@router.get("/{address_id}")
def get_address(address_id: str, user: UserContext = Depends(get_current_user), database: Database = Depends(get_db)):
    return ok(serialize_doc(_owned(database, user.id, address_id)))


@router.post("", status_code=201)
def post_address(
    body: AddressCreateBody,
    user: UserContext = Depends(get_current_user),
    database: Database = Depends(get_db),
):
    doc = create_address(database, user.id, body)
    return ok(serialize_doc(doc), message="Address created successfully", status_code=201)


@router.put("/{address_id}")
def put_address(
    address_id: str,
    body: AddressUpdateBody,
    user: UserContext = Depends(get_current_user),
    database: Database = Depends(get_db),
):
    doc = update_address(database, user.id, address_id, body)
    return ok(serialize_doc(doc), message="Address updated successfully")


@router.patch("/{address_id}/default")
def patch_default_address(
    address_id: str,
    user: UserContext = Depends(get_current_user),
    database: Database = Depends(get_db),
):
    doc = set_default_address(database, user.id, address_id)
    return ok(serialize_doc(doc), message="Default address updated successfully")


@router.delete("/{address_id}")
def remove_address(
    address_id: str,
    user: UserContext = Depends(get_current_user),
    database: Database = Depends(get_db),
):
    delete_address(database, user.id, address_id)
    return ok(message="Address deleted successfully")
