from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pymongo.database import Database

from database import create_document, get_db, serialize_doc, to_object_id, utcnow
from responses import ok
from schemas import CamelModel, Category, CategoryName
from security import AdminContext, get_current_admin

router = APIRouter(prefix="/api/categories", tags=["categories"])
admin_router = APIRouter(prefix="/api/admin/categories", tags=["admin"])


class CategoryCreateBody(Category):
    pass


class CategoryUpdateBody(CamelModel):
    name: Optional[CategoryName] = None
    description: Optional[str] = None
    icon: Optional[str] = None
    display_order: Optional[int] = None
    is_active: Optional[bool] = None


@router.get("")
def list_categories(database: Database = Depends(get_db)):
    items = database["category"].find({"isActive": True}).sort("displayOrder", 1)
    categories = [serialize_doc(c) for c in items]
    return ok(categories, count=len(categories))


@router.get("/{name}")
def get_category(name: str, database: Database = Depends(get_db)):
    doc = database["category"].find_one({"name": name, "isActive": True})
    if not doc:
        raise HTTPException(status_code=404, detail="Category not found")
    return ok(serialize_doc(doc))


@router.post("", status_code=201)
def create_category(
    body: CategoryCreateBody,
    admin: AdminContext = Depends(get_current_admin),
    database: Database = Depends(get_db),
):
    if database["category"].find_one({"name": body.name}):
        raise HTTPException(status_code=400, detail="Category already exists")
    new_id = create_document(database, "category", body)
    doc = database["category"].find_one({"_id": to_object_id(new_id)})
    return ok(serialize_doc(doc), message="Category created successfully", status_code=201)


@router.put("/{category_id}")
def update_category(
    category_id: str,
    body: CategoryUpdateBody,
    admin: AdminContext = Depends(get_current_admin),
    database: Database = Depends(get_db),
):
    data = body.model_dump(exclude_none=True, by_alias=True)
    if not data:
        raise HTTPException(status_code=400, detail="No fields to update")
    if "name" in data:
        existing = database["category"].find_one({"name": data["name"], "_id": {"$ne": to_object_id(category_id)}})
        if existing:
            raise HTTPException(status_code=400, detail="Category already exists")
    data["updatedAt"] = utcnow()
    res = database["category"].update_one({"_id": to_object_id(category_id)}, {"$set": data})
    if res.matched_count == 0:
        raise HTTPException(status_code=404, detail="Category not found")
    doc = database["category"].find_one({"_id": to_object_id(category_id)})
    return ok(serialize_doc(doc), message="Category updated successfully")


@router.delete("/{category_id}")
def delete_category(
    category_id: str,
    admin: AdminContext = Depends(get_current_admin),
    database: Database = Depends(get_db),
):
    res = database["category"].delete_one({"_id": to_object_id(category_id)})
    if res.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Category not found")
    return ok(message="Category deleted successfully")


admin_router.add_api_route("", create_category, methods=["POST"], status_code=201)
admin_router.add_api_route("/{category_id}", update_category, methods=["PUT"])
admin_router.add_api_route("/{category_id}", delete_category, methods=["DELETE"])
