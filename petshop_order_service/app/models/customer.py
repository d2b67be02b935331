from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from .base import OrderServiceBaseModel


class Customer(OrderServiceBaseModel):
    """Customer record owned by the customer subsystem; only read here."""

    __tablename__ = "customers"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
