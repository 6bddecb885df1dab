import uuid
from datetime import datetime

from sqlalchemy import String, Boolean, DateTime, Text, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.db import Base


def _new_store_id() -> str:
    return str(uuid.uuid4())


class Store(Base):
    __tablename__ = "stores"

    # Opaque id, also used in the public menu URL
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_store_id)
    owner_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(100), index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    logo_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    banner_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Contact number that receives orders
    whatsapp: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Manual open/closed flag, shown on the menu header
    is_open: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    owner = relationship("User", back_populates="store")

    @property
    def owner_subscription(self):
        """The owner's access window, or None when it was never provisioned."""
        return self.owner.subscription if self.owner else None
