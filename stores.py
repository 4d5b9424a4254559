import logging
from math import asin, cos, radians, sin, sqrt
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import Field
from pymongo.database import Database

import settings
from database import create_document, get_db, serialize_doc, to_object_id, utcnow
from responses import ok
from schemas import CamelModel, GeoPoint, Store
from security import AdminContext, UserContext, get_current_admin, get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stores", tags=["stores"])
admin_router = APIRouter(prefix="/api/admin/stores", tags=["admin"])


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate the great circle distance between two points on the earth (km)."""
    lon1, lat1, lon2, lat2 = map(radians, [lon1, lat1, lon2, lat2])
    dlon = lon2 - lon1
    dlat = lat2 - lat1
    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    c = 2 * asin(sqrt(a))
    r = 6371  # Radius of earth in kilometers
    return c * r


def nearby_stores(database: Database, latitude: float, longitude: float, radius_km: float) -> List[dict]:
    """Active stores within ``radius_km``, nearest first, each with a ``distance`` in km."""
    found = []
    for store in database["store"].find({"isActive": True}):
        coords = (store.get("location") or {}).get("coordinates") or []
        if len(coords) != 2:
            continue
        distance = haversine_km(latitude, longitude, float(coords[1]), float(coords[0]))
        if distance <= radius_km:
            doc = serialize_doc(store)
            doc["distance"] = round(distance, 3)
            found.append(doc)
    found.sort(key=lambda s: s["distance"])
    return found


def find_default_store(database: Database) -> Optional[dict]:
    if settings.DEFAULT_STORE_ID:
        return database["store"].find_one({"_id": to_object_id(settings.DEFAULT_STORE_ID)})
    return database["store"].find_one({"name": settings.DEFAULT_STORE_NAME})


def store_summary(store: dict) -> dict:
    return {
        "id": str(store["_id"]),
        "name": store.get("name"),
        "address": store.get("address"),
        "location": store.get("location"),
        "contactNumber": store.get("contactNumber"),
    }


# ----------------------- Models -----------------------
class StoreCreateBody(CamelModel):
    name: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    contact_number: str = Field(..., min_length=1)
    service_radius: float = Field(50, ge=1, le=100)
    opening_hours: str = "24/7"
    is_active: bool = True


class StoreUpdateBody(CamelModel):
    name: Optional[str] = None
    address: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    contact_number: Optional[str] = None
    service_radius: Optional[float] = Field(None, ge=1, le=100)
    opening_hours: Optional[str] = None
    is_active: Optional[bool] = None


# ----------------------- Public -----------------------
@router.get("/nearby")
def get_nearby_stores(
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    radius: Optional[float] = None,
    user: UserContext = Depends(get_current_user),
    database: Database = Depends(get_db),
):
    if latitude is None or longitude is None:
        coords = (user.location or {}).get("coordinates") or []
        # [0, 0] is the placeholder a new user starts with
        if len(coords) != 2 or coords == [0, 0]:
            raise HTTPException(status_code=400, detail="Location coordinates are required")
        longitude, latitude = coords
    radius_km = radius or settings.DEFAULT_SEARCH_RADIUS_KM
    stores = nearby_stores(database, latitude, longitude, radius_km)
    return ok(stores, count=len(stores))


@router.get("")
def list_stores(include_inactive: bool = Query(False, alias="includeInactive"), database: Database = Depends(get_db)):
    query = {} if include_inactive else {"isActive": True}
    stores = [serialize_doc(s) for s in database["store"].find(query).sort("name", 1)]
    return ok(stores, count=len(stores))


@router.get("/{store_id}")
def get_store(store_id: str, database: Database = Depends(get_db)):
    store = database["store"].find_one({"_id": to_object_id(store_id)})
    if not store:
        raise HTTPException(status_code=404, detail="Store not found")
    return ok(serialize_doc(store))


# ----------------------- Admin -----------------------
@router.post("", status_code=201)
def create_store(
    body: StoreCreateBody,
    admin: AdminContext = Depends(get_current_admin),
    database: Database = Depends(get_db),
):
    store = Store(
        name=body.name,
        address=body.address,
        location=GeoPoint.from_lat_lng(body.latitude, body.longitude),
        contact_number=body.contact_number,
        service_radius=body.service_radius,
        opening_hours=body.opening_hours,
        is_active=body.is_active,
    )
    store_id = create_document(database, "store", store)
    logger.info("Store %s created by admin %s", store_id, admin.id)
    doc = database["store"].find_one({"_id": to_object_id(store_id)})
    return ok(serialize_doc(doc), message="Store created successfully", status_code=201)


@router.put("/{store_id}")
def update_store(
    store_id: str,
    body: StoreUpdateBody,
    admin: AdminContext = Depends(get_current_admin),
    database: Database = Depends(get_db),
):
    data = body.model_dump(exclude_none=True, by_alias=True)
    latitude = data.pop("latitude", None)
    longitude = data.pop("longitude", None)
    if latitude is not None and longitude is not None:
        data["location"] = GeoPoint.from_lat_lng(latitude, longitude).model_dump()
    if not data:
        raise HTTPException(status_code=400, detail="No fields to update")
    data["updatedAt"] = utcnow()
    res = database["store"].update_one({"_id": to_object_id(store_id)}, {"$set": data})
    if res.matched_count == 0:
        raise HTTPException(status_code=404, detail="Store not found")
    doc = database["store"].find_one({"_id": to_object_id(store_id)})
    return ok(serialize_doc(doc), message="Store updated successfully")


@router.delete("/{store_id}")
def delete_store(
    store_id: str,
    admin: AdminContext = Depends(get_current_admin),
    database: Database = Depends(get_db),
):
    res = database["store"].delete_one({"_id": to_object_id(store_id)})
    if res.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Store not found")
    logger.info("Store %s deleted by admin %s", store_id, admin.id)
    return ok(message="Store deleted successfully")


admin_router.add_api_route("", create_store, methods=["POST"], status_code=201)
admin_router.add_api_route("/{store_id}", update_store, methods=["PUT"])
admin_router.add_api_route("/{store_id}", delete_store, methods=["DELETE"])
