"""
Module: supply_kernel.models.catalog
Responsibility: ORM persistence for the item catalog that request lines,
    order lines and inventory records reference.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from typing import Any
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from supply_kernel.db.base import TrackedBase, UUIDString


class CategoryModel(TrackedBase):
    __tablename__ = "categories"

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


class ItemModel(TrackedBase):
    """A catalog item.  ``unit`` is the counting unit for quantities."""

    __tablename__ = "items"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    unit: Mapped[str] = mapped_column(String(30), nullable=False, default="pcs")
    category_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("categories.id"), nullable=True,
    )
    specifications: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<Item {self.name} ({self.unit})>"
