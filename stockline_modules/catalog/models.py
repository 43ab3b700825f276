"""
Catalog Domain Models (``stockline_modules.catalog.models``).

Frozen value objects returned by CatalogService and UserService.  They carry
no session and no lazy-loading, so callers can use them after the
transaction that produced them has closed.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping
from uuid import UUID

from stockline_kernel.models.user import UserRole


@dataclass(frozen=True)
class ProductInfo:
    id: UUID
    name: str
    description: str | None
    category: str | None
    is_active: bool

    @classmethod
    def from_model(cls, model) -> "ProductInfo":
        return cls(
            id=model.id,
            name=model.name,
            description=model.description,
            category=model.category,
            is_active=model.is_active,
        )


@dataclass(frozen=True)
class VariantInfo:
    """A variant and its current stock position."""
    id: UUID
    product_id: UUID
    sku: str
    price: Decimal
    minimum_stock: int
    stock: int
    attributes: Mapping[str, str] = field(default_factory=dict)

    @property
    def is_below_minimum(self) -> bool:
        return self.stock < self.minimum_stock

    @classmethod
    def from_model(cls, model) -> "VariantInfo":
        return cls(
            id=model.id,
            product_id=model.product_id,
            sku=model.sku,
            price=model.price,
            minimum_stock=model.minimum_stock,
            stock=model.stock,
            attributes=MappingProxyType(dict(model.attributes or {})),
        )


@dataclass(frozen=True)
class SupplierInfo:
    id: UUID
    name: str
    contact_name: str | None
    email: str | None
    phone: str | None
    address: str | None
    is_active: bool

    @classmethod
    def from_model(cls, model) -> "SupplierInfo":
        return cls(
            id=model.id,
            name=model.name,
            contact_name=model.contact_name,
            email=model.email,
            phone=model.phone,
            address=model.address,
            is_active=model.is_active,
        )


@dataclass(frozen=True)
class UserInfo:
    id: UUID
    email: str
    name: str
    role: UserRole
    is_active: bool
    created_at: datetime | None = None

    @classmethod
    def from_model(cls, model) -> "UserInfo":
        return cls(
            id=model.id,
            email=model.email,
            name=model.name,
            role=UserRole(model.role),
            is_active=model.is_active,
            created_at=model.created_at,
        )
