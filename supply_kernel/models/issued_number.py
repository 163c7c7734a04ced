"""
Module: supply_kernel.models.issued_number
Responsibility: Reservation table for human-readable document numbers
    (request, order and shipment numbers).  A number is issued by inserting
    its row; the unique constraint turns a collision into an IntegrityError
    that NumberService catches and retries.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from datetime import datetime

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from supply_kernel.db.base import Base, UTCDateTime


class IssuedNumberModel(Base):
    __tablename__ = "issued_numbers"

    number: Mapped[str] = mapped_column(String(40), nullable=False, unique=True)
    prefix: Mapped[str] = mapped_column(String(10), nullable=False)
    issued_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
