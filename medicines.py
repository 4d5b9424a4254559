import logging
import re
from typing import Optional

import gridfs
from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from fastapi.responses import Response
from pydantic import Field
from pymongo.database import Database

import settings
from database import create_document, get_db, get_documents, serialize_doc, to_object_id, utcnow
from providers import ImageStore, get_image_store
from responses import ok, paginate
from schemas import CATEGORY_NAMES, CamelModel, CategoryName, Medicine
from security import AdminContext, get_current_admin
from stores import nearby_stores, store_summary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/medicines", tags=["medicines"])
admin_router = APIRouter(prefix="/api/admin/medicines", tags=["admin"])


def with_store(database: Database, medicine: dict) -> dict:
    """Serialize a medicine and expand its store reference into a summary."""
    doc = serialize_doc(medicine)
    store_id = medicine.get("store")
    if store_id:
        store = database["store"].find_one({"_id": to_object_id(store_id)})
        doc["store"] = store_summary(store) if store else None
    return doc


def ensure_store_exists(database: Database, store_id: Optional[str]) -> None:
    if store_id and not database["store"].find_one({"_id": to_object_id(store_id)}):
        raise HTTPException(status_code=400, detail="Store does not exist")


# ----------------------- Models -----------------------
class MedicineCreateBody(Medicine):
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)


class MedicineUpdateBody(CamelModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    quantity: Optional[int] = Field(None, ge=0)
    image_url: Optional[str] = None
    prescription_required: Optional[bool] = None
    store: Optional[str] = None
    category: Optional[CategoryName] = None
    subcategory: Optional[str] = None
    manufacturer: Optional[str] = None
    dosage: Optional[str] = None
    discount: Optional[float] = Field(None, ge=0, le=100)
    is_active: Optional[bool] = None


# ----------------------- Public -----------------------
@router.get("/search")
def search_medicines(
    query: Optional[str] = None,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    nearby_only: bool = Query(False, alias="nearbyOnly"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    database: Database = Depends(get_db),
):
    filt = {"isActive": True, "quantity": {"$gt": 0}}
    if query:
        filt["name"] = {"$regex": re.escape(query), "$options": "i"}
    if nearby_only and latitude is not None and longitude is not None:
        stores = nearby_stores(database, latitude, longitude, settings.DEFAULT_SEARCH_RADIUS_KM)
        filt["store"] = {"$in": [s["id"] for s in stores]}

    total = database["medicine"].count_documents(filt)
    found = get_documents(database, "medicine", filt, sort=[("name", 1)], skip=(page - 1) * limit, limit=limit)
    medicines = [with_store(database, m) for m in found]
    return ok(medicines, count=len(medicines), pagination=paginate(total, page, limit))


@router.get("/category/{category}")
def get_medicines_by_category(
    category: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    database: Database = Depends(get_db),
):
    if category not in CATEGORY_NAMES:
        raise HTTPException(status_code=400, detail="Invalid category")
    filt = {"category": category, "isActive": True, "quantity": {"$gt": 0}}
    total = database["medicine"].count_documents(filt)
    found = get_documents(
        database, "medicine", filt, sort=[("createdAt", -1), ("_id", -1)], skip=(page - 1) * limit, limit=limit
    )
    medicines = [serialize_doc(m) for m in found]
    return ok(medicines, count=len(medicines), pagination=paginate(total, page, limit))


@router.get("/store/{store_id}")
def get_medicines_by_store(store_id: str, database: Database = Depends(get_db)):
    medicines = [with_store(database, m) for m in database["medicine"].find({"store": store_id, "isActive": True})]
    return ok(medicines, count=len(medicines))


@router.get("/images/{file_id}")
def get_medicine_image(file_id: str, database: Database = Depends(get_db)):
    try:
        stored = gridfs.GridFS(database).get(to_object_id(file_id))
    except gridfs.NoFile:
        raise HTTPException(status_code=404, detail="Image not found")
    content_type = (stored.metadata or {}).get("contentType") or "application/octet-stream"
    return Response(content=stored.read(), media_type=content_type)


@router.get("/{medicine_id}")
def get_medicine(medicine_id: str, database: Database = Depends(get_db)):
    medicine = database["medicine"].find_one({"_id": to_object_id(medicine_id)})
    if not medicine:
        raise HTTPException(status_code=404, detail="Medicine not found")
    return ok(with_store(database, medicine))


# ----------------------- Admin -----------------------
@router.post("", status_code=201)
def create_medicine(
    body: MedicineCreateBody,
    admin: AdminContext = Depends(get_current_admin),
    database: Database = Depends(get_db),
):
    ensure_store_exists(database, body.store)
    medicine_id = create_document(database, "medicine", Medicine(**body.model_dump()))
    logger.info("Medicine %s created by admin %s", medicine_id, admin.id)
    doc = database["medicine"].find_one({"_id": to_object_id(medicine_id)})
    return ok(serialize_doc(doc), message="Medicine created successfully", status_code=201)


@router.put("/{medicine_id}")
def update_medicine(
    medicine_id: str,
    body: MedicineUpdateBody,
    admin: AdminContext = Depends(get_current_admin),
    database: Database = Depends(get_db),
):
    data = body.model_dump(exclude_none=True, by_alias=True)
    if not data:
        raise HTTPException(status_code=400, detail="No fields to update")
    ensure_store_exists(database, data.get("store"))
    data["updatedAt"] = utcnow()
    res = database["medicine"].update_one({"_id": to_object_id(medicine_id)}, {"$set": data})
    if res.matched_count == 0:
        raise HTTPException(status_code=404, detail="Medicine not found")
    doc = database["medicine"].find_one({"_id": to_object_id(medicine_id)})
    return ok(serialize_doc(doc), message="Medicine updated successfully")


@router.delete("/{medicine_id}")
def delete_medicine(
    medicine_id: str,
    admin: AdminContext = Depends(get_current_admin),
    database: Database = Depends(get_db),
):
    res = database["medicine"].delete_one({"_id": to_object_id(medicine_id)})
    if res.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Medicine not found")
    logger.info("Medicine %s deleted by admin %s", medicine_id, admin.id)
    return ok(message="Medicine deleted successfully")


@router.post("/upload-image")
def upload_medicine_image(
    image: UploadFile = File(...),
    admin: AdminContext = Depends(get_current_admin),
    images: ImageStore = Depends(get_image_store),
):
    if not (image.content_type or "").startswith("image/"):
        raise HTTPException(status_code=400, detail="Only image files are allowed")
    data = image.file.read(settings.MAX_IMAGE_BYTES + 1)
    if len(data) > settings.MAX_IMAGE_BYTES:
        raise HTTPException(status_code=400, detail="Image must be 5MB or smaller")
    try:
        image_url = images.upload_image(data, image.content_type)
    except Exception:
        logger.exception("Image upload failed")
        raise HTTPException(status_code=500, detail="Failed to upload image")
    return ok({"imageUrl": image_url}, message="Image uploaded successfully")


admin_router.add_api_route("", create_medicine, methods=["POST"], status_code=201)
admin_router.add_api_route("/{medicine_id}", update_medicine, methods=["PUT"])
admin_router.add_api_route("/{medicine_id}", delete_medicine, methods=["DELETE"])
