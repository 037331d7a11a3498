"""Dashboard product catalog endpoints.

WHAT:
    CRUD over the resolved shop's products plus product image upload.

WHY:
    PATCH and DELETE read the product by (id, shop) before writing; a product
    owned by another shop is reported as 404 and left untouched.

REFERENCES:
    - syncly/services/shop_scope.py (ShopScope.update_product / delete_product)
    - syncly/routers/shop.py (bulk insert used by the setup wizard)
"""

import logging
import secrets
from datetime import datetime
from pathlib import Path

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..deps import Settings, get_current_shop, get_settings
from ..models import Shop
from ..schemas import (
    ProductCreate,
    ProductListResponse,
    ProductOut,
    ProductResponse,
    ProductUpdate,
    SuccessResponse,
    UploadResponse,
)
from ..services.shop_scope import ShopScope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dashboard", tags=["Products"])

ALLOWED_IMAGE_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}


@router.get("/products", response_model=ProductListResponse)
def list_products(
    shop: Shop = Depends(get_current_shop),
    db: Session = Depends(get_db),
):
    products = ShopScope(db, shop.id).list_products()
    return ProductListResponse(products=[ProductOut.model_validate(p) for p in products])


@router.post("/products", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
def create_product(
    payload: ProductCreate,
    shop: Shop = Depends(get_current_shop),
    db: Session = Depends(get_db),
):
    data = payload.model_dump()
    if data["type"] == "service":
        data["stock"] = None
    elif data["stock"] is None:
        data["stock"] = 0

    (product,) = ShopScope(db, shop.id).add_products([data])
    db.commit()
    db.refresh(product)
    logger.info(f"[PRODUCTS] shop={shop.id} created product={product.id}")
    return ProductResponse(product=ProductOut.model_validate(product))


@router.patch("/products", response_model=ProductResponse)
def update_product(
    payload: ProductUpdate,
    shop: Shop = Depends(get_current_shop),
    db: Session = Depends(get_db),
):
    fields = payload.model_dump(exclude_unset=True, exclude={"id"})
    product = ShopScope(db, shop.id).update_product(payload.id, fields)
    return ProductResponse(product=ProductOut.model_validate(product))


@router.delete("/products", response_model=SuccessResponse)
def delete_product(
    id: str = Query(..., min_length=1, description="Product to delete"),
    shop: Shop = Depends(get_current_shop),
    db: Session = Depends(get_db),
):
    ShopScope(db, shop.id).delete_product(id)
    return SuccessResponse(success=True, message="Product deleted")


@router.post("/upload", response_model=UploadResponse, summary="Upload a product image")
async def upload_image(
    file: UploadFile = File(...),
    shop: Shop = Depends(get_current_shop),
    settings: Settings = Depends(get_settings),
):
    """Store an image under UPLOAD_DIR/<shop_id>/ and return its public URL."""
    extension = ALLOWED_IMAGE_TYPES.get(file.content_type or "")
    if extension is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unsupported file type")

    content = await file.read()
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file provided")
    if len(content) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="File too large")

    filename = f"{datetime.utcnow().strftime('%Y%m%d%H%M%S')}_{secrets.token_hex(6)}.{extension}"
    target_dir = Path(settings.UPLOAD_DIR) / str(shop.id)
    target_dir.mkdir(parents=True, exist_ok=True)
    (target_dir / filename).write_bytes(content)

    url = f"{settings.PUBLIC_BASE_URL.rstrip('/')}/uploads/{shop.id}/{filename}"
    logger.info(f"[UPLOAD] shop={shop.id} stored {filename} ({len(content)} bytes)")
    return UploadResponse(url=url)
