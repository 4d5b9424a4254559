"""
Order placement and order management.

Placing an order walks the cart lines in order: load the medicine, check the
requested quantity against stock, snapshot the line, and write the reduced
stock back before moving to the next line. Only after every line passes is
the order document created with status ``Pending``.

Known limitation: the walk is not transactional. Stock written for earlier
lines stays written when a later line fails, and two concurrent orders can
both pass the stock check for the same medicine. There is no idempotency key
either, so a retried request places a second order.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from pymongo.database import Database

from addresses import get_default_address
from database import create_document, get_db, serialize_doc, to_object_id, utcnow
from responses import ok
from schemas import ORDER_STATUSES, CamelModel, DeliveryAddress, Order, OrderItem
from security import AdminContext, UserContext, get_current_admin, get_current_user
from stores import find_default_store, store_summary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/orders", tags=["orders"])
admin_router = APIRouter(prefix="/api/admin/orders", tags=["admin"])

SNAPSHOT_FIELDS = ("name", "fullName", "phoneNumber", "addressLine1", "addressLine2", "landmark", "pincode", "location")
NEWEST_FIRST = [("createdAt", -1), ("_id", -1)]


class OrderLine(CamelModel):
    medicine_id: str
    quantity: int = Field(..., ge=1)


class OrderCreateBody(CamelModel):
    store_id: Optional[str] = None
    items: List[OrderLine] = []
    address_id: Optional[str] = None
    delivery_address: Optional[DeliveryAddress] = None
    notes: Optional[str] = None


class StatusBody(BaseModel):
    status: str


# ----------------------- Placement -----------------------
def resolve_store(database: Database, store_id: Optional[str]) -> dict:
    if store_id:
        store = database["store"].find_one({"_id": to_object_id(store_id)})
        if not store:
            raise HTTPException(status_code=404, detail="Store not found")
        return store
    store = find_default_store(database)
    if not store:
        raise HTTPException(status_code=400, detail="Store is required")
    return store


def resolve_delivery_address(database: Database, user_id: str, body: OrderCreateBody) -> Optional[DeliveryAddress]:
    """Inline address first, then a saved address by id, then the user's default."""
    if body.delivery_address:
        return body.delivery_address
    if body.address_id:
        address = database["address"].find_one({"_id": to_object_id(body.address_id), "user": user_id})
        if not address:
            raise HTTPException(status_code=404, detail="Address not found")
    else:
        address = get_default_address(database, user_id)
        if not address:
            return None
    return DeliveryAddress.model_validate({k: address.get(k) for k in SNAPSHOT_FIELDS})


def place_order(database: Database, user_id: str, body: OrderCreateBody) -> dict:
    if not body.items:
        raise HTTPException(status_code=400, detail="Order must have at least one item")
    store = resolve_store(database, body.store_id)
    delivery_address = resolve_delivery_address(database, user_id, body)

    total_price = 0.0
    items = []
    for line in body.items:
        medicine = database["medicine"].find_one({"_id": to_object_id(line.medicine_id)})
        if not medicine:
            raise HTTPException(status_code=404, detail=f"Medicine not found: {line.medicine_id}")
        if medicine["quantity"] < line.quantity:
            raise HTTPException(status_code=400, detail=f"Insufficient stock for {medicine['name']}")

        total_price += medicine["price"] * line.quantity
        items.append(
            OrderItem(
                medicine=str(medicine["_id"]),
                name=medicine["name"],
                price=medicine["price"],
                quantity=line.quantity,
            )
        )
        # TODO: move the stock check and decrement into a conditional update
        # ({"quantity": {"$gte": n}} with $inc) inside a session transaction so
        # failed lines roll back and concurrent orders cannot oversell.
        database["medicine"].update_one(
            {"_id": medicine["_id"]},
            {"$set": {"quantity": medicine["quantity"] - line.quantity, "updatedAt": utcnow()}},
        )

    order = Order(
        user=user_id,
        store=str(store["_id"]),
        items=items,
        total_price=total_price,
        delivery_address=delivery_address,
        notes=body.notes,
    )
    order_id = create_document(database, "order", order)
    logger.info("Order %s placed by user %s: %d lines, total %s", order_id, user_id, len(items), order.total_price)
    return database["order"].find_one({"_id": to_object_id(order_id)})


def present_order(database: Database, order: dict, with_user: bool = False) -> dict:
    doc = serialize_doc(order)
    store = database["store"].find_one({"_id": to_object_id(order["store"])})
    doc["store"] = store_summary(store) if store else None
    if with_user:
        user = database["user"].find_one({"_id": to_object_id(order["user"])})
        doc["user"] = {"id": str(user["_id"]), "mobileNumber": user["mobileNumber"]} if user else None
    return doc


def _status_filter(status: Optional[str]) -> dict:
    if not status:
        return {}
    if status not in ORDER_STATUSES:
        raise HTTPException(status_code=400, detail="Invalid status")
    return {"status": status}


# ----------------------- User -----------------------
@router.post("", status_code=201)
def create_order(
    body: OrderCreateBody,
    user: UserContext = Depends(get_current_user),
    database: Database = Depends(get_db),
):
    order = place_order(database, user.id, body)
    return ok(present_order(database, order), message="Order placed successfully", status_code=201)


@router.get("/history")
def get_order_history(user: UserContext = Depends(get_current_user), database: Database = Depends(get_db)):
    orders = [present_order(database, o) for o in database["order"].find({"user": user.id}).sort(NEWEST_FIRST)]
    return ok(orders, count=len(orders))


# ----------------------- Admin -----------------------
@router.get("/all")
def get_all_orders(
    status: Optional[str] = None,
    admin: AdminContext = Depends(get_current_admin),
    database: Database = Depends(get_db),
):
    cursor = database["order"].find(_status_filter(status)).sort(NEWEST_FIRST)
    orders = [present_order(database, o, with_user=True) for o in cursor]
    return ok(orders, count=len(orders))


@router.get("/store/{store_id}")
def get_orders_by_store(
    store_id: str,
    status: Optional[str] = None,
    admin: AdminContext = Depends(get_current_admin),
    database: Database = Depends(get_db),
):
    query = {"store": store_id, **_status_filter(status)}
    orders = [present_order(database, o, with_user=True) for o in database["order"].find(query).sort(NEWEST_FIRST)]
    return ok(orders, count=len(orders))


@router.put("/{order_id}/status")
def update_order_status(
    order_id: str,
    body: StatusBody,
    admin: AdminContext = Depends(get_current_admin),
    database: Database = Depends(get_db),
):
    if body.status not in ORDER_STATUSES:
        raise HTTPException(status_code=400, detail="Invalid status")
    res = database["order"].update_one(
        {"_id": to_object_id(order_id)},
        {"$set": {"status": body.status, "updatedAt": utcnow()}},
    )
    if res.matched_count == 0:
        raise HTTPException(status_code=404, detail="Order not found")
    logger.info("Order %s set to %s by admin %s", order_id, body.status, admin.id)
    order = database["order"].find_one({"_id": to_object_id(order_id)})
    return ok(present_order(database, order, with_user=True), message="Order status updated successfully")


# ----------------------- User -----------------------
@router.get("/{order_id}")
def get_order(order_id: str, user: UserContext = Depends(get_current_user), database: Database = Depends(get_db)):
    order = database["order"].find_one({"_id": to_object_id(order_id), "user": user.id})
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return ok(present_order(database, order, with_user=True))


admin_router.add_api_route("", get_all_orders, methods=["GET"])
admin_router.add_api_route("/store/{store_id}", get_orders_by_store, methods=["GET"])
admin_router.add_api_route("/{order_id}/status", update_order_status, methods=["PUT"])
