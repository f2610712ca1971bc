import logging
from contextlib import asynccontextmanager
from typing import List, Optional

import requests
from fastapi import BackgroundTasks, Body, Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

import auth
import models
from config import PORT, UPLOADS_DIR, setup_logging
from config_store import ConfigStore, get_config_store
from database import Storage, get_storage
from errors import StoreError
from orders import OrderService
from seed import seed_default_data
from shipping import ShippingConfigService, ShippingDispatcher
from site_config import SiteConfigService
from uploads import PUBLIC_PREFIX, save_images


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    storage = get_storage()
    seed_default_data(storage)
    auth.ensure_admin_user(storage)
    logging.info("SYSTEM: Demarrage ElectroMart API")
    yield


app = FastAPI(title="ElectroMart API", version="1.0.0", lifespan=lifespan)

# CORS for frontend access
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.mount(PUBLIC_PREFIX, StaticFiles(directory=UPLOADS_DIR, check_dir=False), name="uploads")

_http_session: Optional[requests.Session] = None


# --- DEPENDENCIES ---

def get_http_session() -> requests.Session:
    global _http_session
    if _http_session is None:
        _http_session = requests.Session()
    return _http_session


def get_site_config_service(store: ConfigStore = Depends(get_config_store)) -> SiteConfigService:
    return SiteConfigService(store)


def get_shipping_config_service(store: ConfigStore = Depends(get_config_store)) -> ShippingConfigService:
    return ShippingConfigService(store)


def get_dispatcher(storage: Storage = Depends(get_storage),
                   shipping_config: ShippingConfigService = Depends(get_shipping_config_service),
                   session: requests.Session = Depends(get_http_session)) -> ShippingDispatcher:
    return ShippingDispatcher(storage, shipping_config, session=session)


def get_order_service(storage: Storage = Depends(get_storage)) -> OrderService:
    return OrderService(storage)


def get_uploads_dir() -> str:
    return UPLOADS_DIR


# --- ERROR HANDLERS ---

def _validation_response(errors: list) -> JSONResponse:
    first = errors[0] if errors else {}
    loc = [str(part) for part in first.get("loc", ()) if part != "body"]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "message": first.get("msg", "Invalid request"),
            "field": ".".join(loc) or None,
            "errors": jsonable_encoder(errors),
        },
    )


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code, content={"message": exc.detail}, headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return _validation_response(list(exc.errors()))


@app.exception_handler(ValidationError)
async def model_validation_handler(request: Request, exc: ValidationError):
    return _validation_response(exc.errors(include_url=False, include_context=False))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logging.exception(f"SYSTEM: Erreur non geree sur {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"message": "Internal Server Error"})


# --- AUTH ENDPOINTS ---

@app.post("/api/login", response_model=models.UserOut)
def login(credentials: models.Credentials, response: Response, storage: Storage = Depends(get_storage)):
    if storage.get_admin_user() is None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Admin is not set up yet")
    user = auth.authenticate(storage, credentials.username, credentials.password)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Incorrect username or password")
    auth.set_session_cookie(response, user)
    return user


@app.post("/api/register", response_model=models.UserOut, status_code=status.HTTP_201_CREATED)
def register(credentials: models.AdminSetup, response: Response, storage: Storage = Depends(get_storage)):
    if storage.get_user_by_username(credentials.username) is not None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Username already exists")
    user = auth.register_user(storage, credentials.username, credentials.password)
    auth.set_session_cookie(response, user)
    return user


@app.post("/api/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(response: Response):
    auth.clear_session_cookie(response)


@app.get("/api/user", response_model=models.UserOut)
def current_user(user: models.User = Depends(auth.require_user)):
    return user


@app.get("/api/admin/setup-needed")
def admin_setup_needed(storage: Storage = Depends(get_storage)):
    return {"needed": storage.get_admin_user() is None}


@app.post("/api/admin/setup", status_code=status.HTTP_201_CREATED)
def admin_setup(data: models.AdminSetup, storage: Storage = Depends(get_storage)):
    auth.setup_admin(storage, data.username, data.password)
    return {"ok": True}


# --- PRODUCTS ENDPOINTS ---

@app.get("/api/products", response_model=List[models.Product])
def get_products(category: Optional[str] = None, search: Optional[str] = None,
                 storage: Storage = Depends(get_storage)):
    return storage.list_products(category=category or None, search=search or None)


@app.get("/api/products/{product_id}", response_model=models.Product)
def get_product_detail(product_id: int, storage: Storage = Depends(get_storage)):
    product = storage.get_product(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@app.post("/api/products", response_model=models.Product, status_code=status.HTTP_201_CREATED)
def create_product(product: models.ProductCreate, storage: Storage = Depends(get_storage),
                   admin: models.User = Depends(auth.require_admin)):
    return storage.create_product(product)


@app.put("/api/products/{product_id}", response_model=models.Product)
def update_product(product_id: int, product: models.ProductUpdate, storage: Storage = Depends(get_storage),
                   admin: models.User = Depends(auth.require_admin)):
    return storage.update_product(product_id, product)


@app.delete("/api/products/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_product(product_id: int, storage: Storage = Depends(get_storage),
                   admin: models.User = Depends(auth.require_admin)):
    storage.delete_product(product_id)


# --- ORDERS ENDPOINTS ---

@app.post("/api/orders", response_model=models.Order, status_code=status.HTTP_201_CREATED)
def create_order(order: models.OrderCreate, background_tasks: BackgroundTasks,
                 service: OrderService = Depends(get_order_service)):
    created = service.create_order_from_cart(
        customer_name=order.customer_name,
        phone=order.phone,
        wilaya=order.wilaya,
        address=order.address,
        items=order.items,
        commune=order.commune,
    )
    background_tasks.add_task(service.notify, created)
    return created


@app.get("/api/orders", response_model=List[models.Order])
def get_orders(service: OrderService = Depends(get_order_service),
               admin: models.User = Depends(auth.require_admin)):
    return service.list_orders()


@app.patch("/api/orders/{order_id}/status", response_model=models.Order)
def update_order_status(order_id: int, update: models.OrderStatusUpdate,
                        service: OrderService = Depends(get_order_service),
                        admin: models.User = Depends(auth.require_admin)):
    return service.set_status(order_id, update.status)


# --- SLIDES ENDPOINTS ---

@app.get("/api/slides", response_model=List[models.Slide])
def get_slides(storage: Storage = Depends(get_storage)):
    return storage.list_slides()


@app.post("/api/slides", response_model=models.Slide, status_code=status.HTTP_201_CREATED)
def create_slide(slide: models.SlideCreate, storage: Storage = Depends(get_storage),
                 admin: models.User = Depends(auth.require_admin)):
    return storage.create_slide(slide)


@app.put("/api/slides/{slide_id}", response_model=models.Slide)
def update_slide(slide_id: int, slide: models.SlideUpdate, storage: Storage = Depends(get_storage),
                 admin: models.User = Depends(auth.require_admin)):
    return storage.update_slide(slide_id, slide)


@app.delete("/api/slides/{slide_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_slide(slide_id: int, storage: Storage = Depends(get_storage),
                 admin: models.User = Depends(auth.require_admin)):
    storage.delete_slide(slide_id)


# --- SITE CONFIG ENDPOINTS ---

@app.get("/api/site/config", response_model=models.SiteConfig)
def get_site_config(service: SiteConfigService = Depends(get_site_config_service)):
    return service.public_view()


@app.put("/api/site/config", response_model=models.SiteConfig)
def update_site_config(changes: models.SiteConfig,
                       service: SiteConfigService = Depends(get_site_config_service),
                       admin: models.User = Depends(auth.require_admin)):
    service.update(changes)
    logging.info(f"CATALOGUE: Configuration du site mise a jour par {admin.username}")
    return service.public_view()


# --- SHIPPING ENDPOINTS ---

@app.get("/api/shipping/config", response_model=models.ShippingConfigOut)
def get_shipping_config(service: ShippingConfigService = Depends(get_shipping_config_service),
                        admin: models.User = Depends(auth.require_admin)):
    return service.public_view()


@app.put("/api/shipping/config", response_model=models.ShippingConfigOut)
def update_shipping_config(data: models.ShippingConfigUpdate,
                           service: ShippingConfigService = Depends(get_shipping_config_service),
                           admin: models.User = Depends(auth.require_admin)):
    service.update(data)
    return service.public_view()


@app.get("/api/shipping/configured")
def shipping_configured(service: ShippingConfigService = Depends(get_shipping_config_service),
                        admin: models.User = Depends(auth.require_admin)):
    return {"configured": service.is_configured()}


@app.post("/api/shipping/dispatch", response_model=models.DispatchSummary, response_model_exclude_none=True)
def dispatch_orders(request: Optional[models.DispatchRequest] = Body(None),
                    dispatcher: ShippingDispatcher = Depends(get_dispatcher),
                    admin: models.User = Depends(auth.require_admin)):
    order_ids = request.order_ids if request is not None else None
    return dispatcher.dispatch(order_ids)


# --- UPLOADS ENDPOINT ---

@app.post("/api/uploads", response_model=models.UploadResponse, status_code=status.HTTP_201_CREATED)
def upload_images(payload: models.UploadRequest, directory: str = Depends(get_uploads_dir),
                  admin: models.User = Depends(auth.require_admin)):
    return {"urls": save_images([f.data_url for f in payload.files], directory)}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=PORT)
