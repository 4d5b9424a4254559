"""
Database Schemas for the Medical Store backend

Each Pydantic model corresponds to one MongoDB collection.
Collection name is the lowercase of the class name.

Attributes are snake_case in Python and camelCase in MongoDB and on the wire,
so every model dumps with ``by_alias=True`` before it is stored.
References to other documents are stored as string ids.
"""
from datetime import datetime
from typing import List, Literal, Optional, get_args

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

CategoryName = Literal["Pharmacy", "Lab Tests", "Pet Care", "Consults", "Wellness"]
CATEGORY_NAMES = get_args(CategoryName)

OrderStatus = Literal["Pending", "Ready", "Picked Up", "Cancelled"]
ORDER_STATUSES = get_args(OrderStatus)

AdminRole = Literal["admin", "superadmin"]

MOBILE_PATTERN = r"^[0-9]{10}$"
PINCODE_PATTERN = r"^[0-9]{6}$"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GeoPoint(CamelModel):
    type: Literal["Point"] = "Point"
    coordinates: List[float] = Field(..., min_length=2, max_length=2, description="[longitude, latitude]")

    @classmethod
    def from_lat_lng(cls, latitude: float, longitude: float) -> "GeoPoint":
        return cls(coordinates=[longitude, latitude])


class Store(CamelModel):
    name: str
    address: str
    location: GeoPoint
    service_radius: float = Field(50, ge=1, le=100, description="Service radius in km")
    contact_number: str
    opening_hours: str = "24/7"
    is_active: bool = True


class Medicine(CamelModel):
    name: str
    description: str
    price: float = Field(..., ge=0)
    quantity: int = Field(0, ge=0)
    image_url: str = ""
    prescription_required: bool = False
    store: Optional[str] = Field(None, description="Store id, optional in the single-store model")
    category: CategoryName
    subcategory: Optional[str] = None
    manufacturer: Optional[str] = None
    dosage: Optional[str] = Field(None, description="e.g. 500mg, 10ml")
    discount: float = Field(0, ge=0, le=100, description="Discount percentage")
    is_active: bool = True


class User(CamelModel):
    mobile_number: str = Field(..., pattern=MOBILE_PATTERN)
    location: GeoPoint = Field(default_factory=lambda: GeoPoint(coordinates=[0, 0]))
    refresh_token: Optional[str] = None


class Admin(CamelModel):
    email: EmailStr
    password_hash: str = Field(..., description="Salted password hash")
    role: AdminRole = "admin"


class Otp(CamelModel):
    mobile_number: str
    otp: str
    expires_at: datetime
    verified: bool = False


class Category(CamelModel):
    name: CategoryName
    description: str
    icon: str
    display_order: int = 0
    is_active: bool = True


class Address(CamelModel):
    user: str
    name: str = Field(..., max_length=50, description="Label such as Home or Office")
    full_name: str = Field(..., max_length=100)
    phone_number: str = Field(..., max_length=15)
    address_line1: str = Field(..., max_length=200)
    address_line2: Optional[str] = Field(None, max_length=200)
    landmark: str = Field(..., max_length=100)
    pincode: str = Field(..., pattern=PINCODE_PATTERN)
    location: GeoPoint
    is_default: bool = False


class DeliveryAddress(CamelModel):
    name: str
    full_name: str
    phone_number: str
    address_line1: str
    address_line2: Optional[str] = None
    landmark: str
    pincode: str = Field(..., pattern=PINCODE_PATTERN)
    location: Optional[GeoPoint] = None


class OrderItem(CamelModel):
    medicine: str
    name: str
    price: float = Field(..., ge=0)
    quantity: int = Field(..., ge=1)


class Order(CamelModel):
    user: str
    store: str
    items: List[OrderItem] = Field(..., min_length=1)
    total_price: float = Field(..., ge=0)
    status: OrderStatus = "Pending"
    delivery_address: Optional[DeliveryAddress] = None
    notes: Optional[str] = None
