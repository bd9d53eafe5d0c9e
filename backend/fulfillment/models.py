# 📂 backend/fulfillment/models.py — SQLAlchemy ORM models
# -----------------------------------------------------------------------------
# Purpose:
#   • The subset of storefront tables the fulfillment backend touches:
#       orders, products, pterodactyl_configs and the `settings` singleton.
#   • Rows are created/deleted by the storefront. This service reads them and
#     updates exactly two order columns (status, pterodactyl_server_id).
#
# Business rules:
#   • A product is provisioned on Pterodactyl only when
#     category == settings.PANEL_PRODUCT_CATEGORY ("panel_pterodactyl").
#   • Resource limits come from the linked pterodactyl_configs row.
#   • orders.pterodactyl_server_id is UNIQUE and written with a compare-and-swap
#     (… WHERE pterodactyl_server_id IS NULL): one server per order.
#   • Panel credentials (API key, panel URL) are kept in `settings`.
# -----------------------------------------------------------------------------

from __future__ import annotations

import enum
from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base, relationship

from .config import get_settings

Base = declarative_base()

settings = get_settings()
SCHEMA = settings.DB_SCHEMA


class OrderStatus(str, enum.Enum):
    """
    Known order statuses. The column itself is free text: the storefront may
    write other values, which notifications render with the generic template.
    """
    PENDING = "pending"
    WAITING_CONFIRMATION = "waiting_confirmation"
    PROCESSING = "processing"
    DONE = "done"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class PterodactylConfig(Base):
    """
    Server template for a product: limits, placement and egg.
    memory/swap/disk in MB, cpu in percent (100 = one core), io weight 10..1000.
    """
    __tablename__ = "pterodactyl_configs"
    __table_args__ = ({"schema": SCHEMA},)

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    name = Column(String(128), nullable=True)

    egg_id = Column(Integer, nullable=False)
    nest_id = Column(Integer, nullable=False)
    location_id = Column(Integer, nullable=False)

    memory = Column(Integer, nullable=False, default=1024)
    cpu = Column(Integer, nullable=False, default=100)
    disk = Column(Integer, nullable=False, default=5120)
    swap = Column(Integer, nullable=False, default=0)
    io = Column(Integer, nullable=False, default=500)

    # feature limits (panel defaults to 0 when omitted)
    databases = Column(Integer, nullable=True)
    allocations = Column(Integer, nullable=True)
    backups = Column(Integer, nullable=True)

    docker_image = Column(Text, nullable=True)
    startup = Column(Text, nullable=True)          # startup command template
    environment = Column(JSONB, nullable=True)     # egg variables {"SERVER_JARFILE": "server.jar", ...}

    products = relationship("Product", back_populates="pterodactyl_config")


class Product(Base):
    __tablename__ = "products"
    __table_args__ = ({"schema": SCHEMA},)

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    category = Column(String(64), nullable=False)
    pterodactyl_config_id = Column(
        BigInteger,
        ForeignKey(f"{SCHEMA}.pterodactyl_configs.id", ondelete="SET NULL"),
        nullable=True,
    )

    pterodactyl_config = relationship("PterodactylConfig", back_populates="products")
    orders = relationship("Order", back_populates="product")


class Order(Base):
    """
    Storefront order. `user_id` is the storefront account (auth uuid as text).
    """
    __tablename__ = "orders"
    __table_args__ = ({"schema": SCHEMA},)

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=True)
    product_id = Column(BigInteger, ForeignKey(f"{SCHEMA}.products.id"), nullable=False)

    contact_email = Column(String(255), nullable=False)
    username = Column(String(64), nullable=True)
    payment_method = Column(String(64), nullable=True)
    payment_proof = Column(Text, nullable=True)    # image URL uploaded by the customer

    status = Column(String(32), nullable=False, default=OrderStatus.WAITING_CONFIRMATION.value)
    pterodactyl_server_id = Column(String(64), nullable=True, unique=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True)

    product = relationship("Product", back_populates="orders")


class SiteSettings(Base):
    """
    Singleton row edited from the store admin page.
    """
    __tablename__ = "settings"
    __table_args__ = ({"schema": SCHEMA},)

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    pterodactyl_api_key = Column(Text, nullable=True)
    pterodactyl_panel_url = Column(Text, nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=True)
