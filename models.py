"""
Pydantic models shared by the storage backends and the API.

Python attributes are snake_case; the JSON wire format is camelCase
(``customerName``, ``isFeatured`` ...) through the alias generator.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

NonEmptyStr = Annotated[str, Field(min_length=1)]
PositiveId = Annotated[int, Field(gt=0)]


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class OrderStatus(str, Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"


class Category(str, Enum):
    SMARTPHONES = "Smartphones"
    LAPTOPS = "Laptops"
    HEADPHONES = "Headphones"
    GAMING = "Gaming"
    ACCESSORIES = "Accessories"


UserRole = Literal["user", "admin"]


# --- USERS ---

class User(ApiModel):
    id: int
    username: str
    password: str  # "<scrypt hex>.<salt hex>", never sent to clients
    role: UserRole = "user"
    created_at: datetime


class UserOut(ApiModel):
    id: int
    username: str
    role: UserRole
    created_at: datetime


class Credentials(ApiModel):
    username: str
    password: str


class AdminSetup(ApiModel):
    username: str = Field(min_length=2)
    password: str = Field(min_length=6)


# --- PRODUCTS ---

class ProductBase(ApiModel):
    name: NonEmptyStr
    name_fr: Optional[str] = None
    description: str
    description_fr: Optional[str] = None
    category: Category
    price: float = Field(ge=0)
    old_price: Optional[float] = Field(None, ge=0)
    stock: int = Field(0, ge=0)
    images: List[str]
    specifications: Optional[Dict[str, str]] = None
    is_featured: bool = False


class ProductCreate(ProductBase):
    pass


class ProductUpdate(ApiModel):
    name: Optional[NonEmptyStr] = None
    name_fr: Optional[str] = None
    description: Optional[str] = None
    description_fr: Optional[str] = None
    category: Optional[Category] = None
    price: Optional[float] = Field(None, ge=0)
    old_price: Optional[float] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    images: Optional[List[str]] = None
    specifications: Optional[Dict[str, str]] = None
    is_featured: Optional[bool] = None


class Product(ProductBase):
    id: int
    created_at: datetime


# --- ORDERS ---

class OrderItem(ApiModel):
    product_id: int
    quantity: int
    price: float  # unit price when the order was placed


class CartLine(ApiModel):
    product_id: PositiveId
    quantity: int = Field(ge=1)


class OrderCreate(ApiModel):
    customer_name: str = Field(min_length=2)
    phone: str = Field(min_length=5)
    wilaya: str = Field(min_length=1)
    commune: Optional[str] = None
    address: str = Field(min_length=5)
    items: List[CartLine] = Field(min_length=1)


class Order(ApiModel):
    id: int
    customer_name: str
    phone: str
    wilaya: str
    commune: Optional[str] = None
    address: str
    total_price: float
    status: OrderStatus = OrderStatus.PENDING
    items: List[OrderItem]
    created_at: datetime


class OrderStatusUpdate(ApiModel):
    status: OrderStatus


# --- SLIDES ---

class SlideBase(ApiModel):
    title: NonEmptyStr
    title_fr: Optional[str] = None
    subtitle: Optional[str] = None
    subtitle_fr: Optional[str] = None
    description: Optional[str] = None
    description_fr: Optional[str] = None
    button_text: Optional[str] = None
    button_text_fr: Optional[str] = None
    image_url: NonEmptyStr
    link_url: NonEmptyStr
    sort_order: int = 0


class SlideCreate(SlideBase):
    pass


class SlideUpdate(ApiModel):
    title: Optional[NonEmptyStr] = None
    title_fr: Optional[str] = None
    subtitle: Optional[str] = None
    subtitle_fr: Optional[str] = None
    description: Optional[str] = None
    description_fr: Optional[str] = None
    button_text: Optional[str] = None
    button_text_fr: Optional[str] = None
    image_url: Optional[NonEmptyStr] = None
    link_url: Optional[NonEmptyStr] = None
    sort_order: Optional[int] = None


class Slide(SlideBase):
    id: int
    created_at: datetime


# --- SITE CONFIG ---

class AnnouncementItem(ApiModel):
    id: PositiveId
    text: NonEmptyStr
    text_fr: Optional[str] = None
    sort_order: Optional[int] = None


class HomeLink(ApiModel):
    """Quick link or category highlight tile on the home page."""
    id: PositiveId
    title: NonEmptyStr
    title_fr: Optional[str] = None
    image_url: NonEmptyStr
    link_url: NonEmptyStr
    sort_order: Optional[int] = None


class CheckoutWilaya(ApiModel):
    code: NonEmptyStr
    name: NonEmptyStr
    communes: Optional[List[NonEmptyStr]] = None


class DeliveryCompany(ApiModel):
    id: PositiveId
    name: NonEmptyStr
    price_home: int = Field(ge=0)
    price_office: int = Field(ge=0)
    wilayas: List[NonEmptyStr]


class SiteConfig(ApiModel):
    logo_url: Optional[str] = None
    home_categories_title: Optional[str] = None
    home_categories_title_fr: Optional[str] = None
    home_categories_subtitle: Optional[str] = None
    home_categories_subtitle_fr: Optional[str] = None
    announcement_enabled: Optional[bool] = None
    announcement_speed_seconds: Optional[float] = Field(None, ge=8, le=60)
    announcement_items: Optional[List[AnnouncementItem]] = None
    home_quick_links: Optional[List[HomeLink]] = None
    lingerie_hero_enabled: Optional[bool] = None
    lingerie_hero_image_url: Optional[str] = None
    lingerie_hero_title: Optional[str] = None
    lingerie_hero_button_text: Optional[str] = None
    lingerie_hero_button_link: Optional[str] = None
    home_category_highlights: Optional[List[HomeLink]] = None
    checkout_wilayas: Optional[List[CheckoutWilaya]] = None
    delivery_companies: Optional[List[DeliveryCompany]] = None


# --- SHIPPING ---

class ShippingConfigUpdate(ApiModel):
    api_url: NonEmptyStr
    api_id: NonEmptyStr
    api_token: Optional[str] = None
    from_wilaya_name: Optional[str] = None
    default_commune: Optional[str] = None


class ShippingConfigOut(ApiModel):
    api_url: Optional[str] = None
    api_id: Optional[str] = None
    token_present: bool
    from_wilaya_name: Optional[str] = None
    default_commune: Optional[str] = None


class DispatchRequest(ApiModel):
    order_ids: Optional[List[PositiveId]] = None


class DispatchResult(ApiModel):
    order_id: int
    ok: bool
    message: Optional[str] = None


class DispatchSummary(ApiModel):
    attempted: int
    sent: int
    failed: int
    results: List[DispatchResult]


# --- UPLOADS ---

class ImagePayload(ApiModel):
    data_url: NonEmptyStr


class UploadRequest(ApiModel):
    files: List[ImagePayload] = Field(min_length=1)


class UploadResponse(BaseModel):
    urls: List[str]
