from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, status
from sqlalchemy.orm import Session
from typing import List

from core.db import get_db
from core.tenancy import get_owner_store
from models.store import Store
from models.product import Product
from schemas.product import ProductCreate, ProductUpdate, ProductOut
from services.cloudinary import InvalidImageError, cloudinary_service, read_image_upload

router = APIRouter(prefix="/products", tags=["products"])


def _get_store_product(product_id: int, store: Store, db: Session) -> Product:
    product = db.query(Product).filter(Product.store_id == store.id, Product.id == product_id).one_or_none()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.get("/", response_model=List[ProductOut])
def list_products(store: Store = Depends(get_owner_store), db: Session = Depends(get_db)):
    return (
        db.query(Product)
        .filter(Product.store_id == store.id)
        .order_by(Product.category.is_(None), Product.category.asc(), Product.name.asc())
        .all()
    )


@router.post("/", response_model=ProductOut, status_code=201)
def create_product(data: ProductCreate, store: Store = Depends(get_owner_store), db: Session = Depends(get_db)):
    product = Product(
        store_id=store.id,
        name=data.name.strip(),
        description=data.description,
        price=data.price,
        category=data.category,
        image_url=data.image_url or None,
        active=data.active,
    )
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


@router.get("/{product_id}", response_model=ProductOut)
def get_product(product_id: int, store: Store = Depends(get_owner_store), db: Session = Depends(get_db)):
    return _get_store_product(product_id, store, db)


@router.patch("/{product_id}", response_model=ProductOut)
def update_product(product_id: int, data: ProductUpdate, store: Store = Depends(get_owner_store), db: Session = Depends(get_db)):
    product = _get_store_product(product_id, store, db)

    update_data = data.model_dump(exclude_unset=True)
    if update_data.get("name") is not None:
        product.name = update_data["name"].strip()
    if update_data.get("price") is not None:
        product.price = update_data["price"]
    if update_data.get("active") is not None:
        product.active = update_data["active"]
    # Nullable fields can be cleared
    for field in ("description", "category", "image_url"):
        if field in update_data:
            setattr(product, field, update_data[field] or None)

    db.commit()
    db.refresh(product)
    return product


@router.post("/{product_id}/toggle", response_model=ProductOut)
def toggle_product(product_id: int, store: Store = Depends(get_owner_store), db: Session = Depends(get_db)):
    product = _get_store_product(product_id, store, db)
    product.active = not product.active
    db.commit()
    db.refresh(product)
    return product


@router.post("/{product_id}/image", response_model=ProductOut)
async def upload_product_image(
    product_id: int,
    file: UploadFile = File(...),
    store: Store = Depends(get_owner_store),
    db: Session = Depends(get_db)
):
    """Upload a product photo. On failure the product keeps its current image."""
    product = _get_store_product(product_id, store, db)
    try:
        file_data = await read_image_upload(file)
    except InvalidImageError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    success, url, error = cloudinary_service.upload_product_image(file_data, store.id, product.id)
    if not success:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Failed to upload image: {error}")

    product.image_url = url
    db.commit()
    db.refresh(product)
    return product


@router.delete("/{product_id}", status_code=204)
def delete_product(product_id: int, store: Store = Depends(get_owner_store), db: Session = Depends(get_db)):
    product = _get_store_product(product_id, store, db)
    db.delete(product)
    db.commit()
    return None
