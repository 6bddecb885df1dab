from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, status
from sqlalchemy.orm import Session

from core.db import get_db
from core.logging import get_logger
from core.tenancy import get_owner_store, get_store_usage_stats, require_active_subscription
from models.store import Store
from models.user import User
from schemas.store import StoreCreate, StoreOut, StoreSettingsUpdate, StoreStats
from services.cloudinary import InvalidImageError, cloudinary_service, read_image_upload

logger = get_logger(__name__)

router = APIRouter(prefix="/stores", tags=["stores"])


@router.post("/", response_model=StoreOut, status_code=201)
def create_store(data: StoreCreate, user: User = Depends(require_active_subscription), db: Session = Depends(get_db)):
    """Onboarding: each owner runs exactly one store."""
    existing = db.query(Store).filter(Store.owner_id == user.id).one_or_none()
    if existing:
        raise HTTPException(status_code=400, detail="Store already exists")
    store = Store(
        owner_id=user.id,
        name=data.name.strip(),
        description=data.description,
        whatsapp=data.whatsapp,
    )
    db.add(store)
    db.commit()
    db.refresh(store)
    logger.info("Store %s created for owner %s", store.id, user.id)
    return store


@router.get("/mine", response_model=StoreOut)
def get_my_store(store: Store = Depends(get_owner_store)):
    return store


@router.patch("/mine", response_model=StoreOut)
def update_my_store(data: StoreSettingsUpdate, store: Store = Depends(get_owner_store), db: Session = Depends(get_db)):
    update_data = data.model_dump(exclude_unset=True)

    if "name" in update_data and update_data["name"] is not None:
        store.name = update_data["name"].strip()
    for field in ("description", "whatsapp"):
        if field in update_data:
            setattr(store, field, update_data[field] or None)
    for field in ("logo_url", "banner_url"):
        if field in update_data:
            value = update_data[field]
            setattr(store, field, str(value) if value else None)
    if update_data.get("is_open") is not None:
        store.is_open = update_data["is_open"]

    db.commit()
    db.refresh(store)
    return store


@router.get("/mine/stats", response_model=StoreStats)
def get_my_store_stats(store: Store = Depends(get_owner_store), db: Session = Depends(get_db)):
    return get_store_usage_stats(store.id, db)


async def _upload_store_image(kind: str, file: UploadFile, store: Store, db: Session) -> Store:
    try:
        file_data = await read_image_upload(file)
    except InvalidImageError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    success, url, error = cloudinary_service.upload_store_image(file_data, store.id, kind)
    if not success:
        # Previous image stays in place
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Failed to upload image: {error}")

    setattr(store, f"{kind}_url", url)
    db.commit()
    db.refresh(store)
    return store


@router.post("/mine/logo", response_model=StoreOut)
async def upload_logo(
    file: UploadFile = File(...),
    store: Store = Depends(get_owner_store),
    db: Session = Depends(get_db)
):
    return await _upload_store_image("logo", file, store, db)


@router.post("/mine/banner", response_model=StoreOut)
async def upload_banner(
    file: UploadFile = File(...),
    store: Store = Depends(get_owner_store),
    db: Session = Depends(get_db)
):
    return await _upload_store_image("banner", file, store, db)
