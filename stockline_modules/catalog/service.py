"""
Catalog Module Service (``stockline_modules.catalog.service``).

Responsibility
--------------
Creates products, variants and suppliers, books manual stock adjustments,
and manages console users.  Stock never changes here directly: opening
balances and adjustments are routed through ``StockLedgerService`` like any
other movement.

Invariants
----------
- A new variant starts at stock 0; a non-zero opening quantity becomes an
  ``adjustment`` ledger entry with reference ``opening-balance``.
- Manual adjustments may use ``adjustment`` (either sign), ``return`` or
  ``cancellation`` (positive only).  ``sale`` and ``purchase`` are reserved
  for the order lifecycles.
- Only an owner may create another owner.

Failure Modes
-------------
- ``ValidationError`` and its not-found / duplicate subclasses for bad input.
- ``InsufficientStockError`` from the ledger for a negative adjustment that
  exceeds on-hand stock.
- ``ForbiddenError`` when a non-owner tries to create an owner.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stockline_kernel.domain.clock import Clock, SystemClock
from stockline_kernel.domain.dtos import StockReason
from stockline_kernel.exceptions import (
    DuplicateEmailError,
    DuplicateSkuError,
    ForbiddenError,
    ProductNotFoundError,
    ValidationError,
    VariantNotFoundError,
)
from stockline_kernel.logging_config import get_logger
from stockline_kernel.models.catalog import Product, Variant
from stockline_kernel.models.supplier import Supplier
from stockline_kernel.models.user import User, UserRole
from stockline_kernel.services.stock_ledger import StockLedgerService
from stockline_modules._validation import (
    non_negative_int,
    optional_text,
    parse_price,
    require_text,
)
from stockline_modules.catalog.models import ProductInfo, SupplierInfo, UserInfo, VariantInfo

logger = get_logger("modules.catalog.service")

OPENING_BALANCE_REFERENCE = "opening-balance"
MANUAL_ADJUSTMENT_REFERENCE = "manual-adjustment"

# reason -> allowed sign ("any" or "positive")
_ADJUSTABLE_REASONS: dict[StockReason, str] = {
    StockReason.ADJUSTMENT: "any",
    StockReason.RETURN: "positive",
    StockReason.CANCELLATION: "positive",
}


class CatalogService:
    """
    Products, variants, suppliers and manual stock adjustments.

    Transaction boundary: flushes only; the caller commits.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._ledger = StockLedgerService(session, self._clock)

    # ------------------------------------------------------------------
    # Products / variants
    # ------------------------------------------------------------------

    def create_product(
        self,
        name: str,
        actor_id: UUID,
        description: str | None = None,
        category: str | None = None,
    ) -> ProductInfo:
        product = Product(
            name=require_text(name, "name"),
            description=optional_text(description),
            category=optional_text(category),
            is_active=True,
            created_by_id=actor_id,
            created_at=self._clock.now(),
            updated_at=self._clock.now(),
        )
        self._session.add(product)
        self._session.flush()
        logger.info(
            "product_created",
            extra={"product_id": str(product.id), "product_name": product.name},
        )
        return ProductInfo.from_model(product)

    def create_variant(
        self,
        product_id: UUID,
        sku: str,
        price: Decimal | int | str,
        actor_id: UUID,
        minimum_stock: int = 0,
        attributes: Mapping[str, Any] | None = None,
        initial_stock: int = 0,
    ) -> VariantInfo:
        """
        Create a variant; ``initial_stock`` is booked through the ledger.
        """
        sku = require_text(sku, "sku")
        unit_price = parse_price(price)
        minimum_stock = non_negative_int(minimum_stock, "minimum_stock")
        initial_stock = non_negative_int(initial_stock, "initial_stock")
        if attributes is not None and not isinstance(attributes, Mapping):
            raise ValidationError("attributes must be a mapping", field="attributes")

        if self._session.get(Product, product_id) is None:
            raise ProductNotFoundError(str(product_id))

        existing = self._session.execute(
            select(Variant.id).where(Variant.sku == sku)
        ).scalar_one_or_none()
        if existing is not None:
            raise DuplicateSkuError(sku)

        variant = Variant(
            product_id=product_id,
            sku=sku,
            price=unit_price,
            minimum_stock=minimum_stock,
            stock=0,
            attributes={str(k): v for k, v in (attributes or {}).items()},
            created_by_id=actor_id,
            created_at=self._clock.now(),
            updated_at=self._clock.now(),
        )
        self._session.add(variant)
        self._session.flush()

        if initial_stock > 0:
            self._ledger.apply_delta(
                variant.id,
                initial_stock,
                StockReason.ADJUSTMENT,
                OPENING_BALANCE_REFERENCE,
                actor_id,
            )

        logger.info(
            "variant_created",
            extra={
                "variant_id": str(variant.id),
                "sku": sku,
                "initial_stock": initial_stock,
            },
        )
        return VariantInfo.from_model(variant)

    def get_variant(self, variant_id: UUID) -> VariantInfo:
        variant = self._session.get(Variant, variant_id)
        if variant is None:
            raise VariantNotFoundError(str(variant_id))
        return VariantInfo.from_model(variant)

    def list_variants(self) -> list[VariantInfo]:
        variants = self._session.execute(select(Variant).order_by(Variant.sku)).scalars()
        return [VariantInfo.from_model(v) for v in variants]

    # ------------------------------------------------------------------
    # Suppliers
    # ------------------------------------------------------------------

    def create_supplier(
        self,
        name: str,
        actor_id: UUID,
        contact_name: str | None = None,
        email: str | None = None,
        phone: str | None = None,
        address: str | None = None,
    ) -> SupplierInfo:
        supplier = Supplier(
            name=require_text(name, "name"),
            contact_name=optional_text(contact_name),
            email=optional_text(email),
            phone=optional_text(phone),
            address=optional_text(address),
            is_active=True,
            created_by_id=actor_id,
            created_at=self._clock.now(),
            updated_at=self._clock.now(),
        )
        self._session.add(supplier)
        self._session.flush()
        logger.info(
            "supplier_created",
            extra={"supplier_id": str(supplier.id), "supplier_name": supplier.name},
        )
        return SupplierInfo.from_model(supplier)

    # ------------------------------------------------------------------
    # Manual stock adjustment
    # ------------------------------------------------------------------

    def adjust_stock(
        self,
        variant_id: UUID,
        delta: int,
        reason: StockReason | str,
        actor_id: UUID,
        reference: str | None = None,
    ) -> VariantInfo:
        """
        Book a manual stock movement.

        Raises:
            ValidationError: reason not allowed, wrong sign, or zero delta.
            InsufficientStockError: the decrement exceeds on-hand stock.
        """
        try:
            reason = StockReason(reason)
        except ValueError as exc:
            raise ValidationError(f"Unknown stock reason: {reason!r}", field="reason") from exc

        sign_rule = _ADJUSTABLE_REASONS.get(reason)
        if sign_rule is None:
            raise ValidationError(
                f"Reason '{reason.value}' is reserved for order processing",
                field="reason",
            )
        if isinstance(delta, bool) or not isinstance(delta, int):
            raise ValidationError("delta must be an integer", field="delta")
        if delta == 0:
            raise ValidationError("delta must be non-zero", field="delta")
        if sign_rule == "positive" and delta < 0:
            raise ValidationError(
                f"Reason '{reason.value}' only adds stock",
                field="delta",
            )

        self._ledger.apply_delta(
            variant_id,
            delta,
            reason,
            optional_text(reference) or MANUAL_ADJUSTMENT_REFERENCE,
            actor_id,
        )
        variant = self._session.get(Variant, variant_id)
        logger.info(
            "stock_adjusted",
            extra={
                "variant_id": str(variant_id),
                "delta": delta,
                "reason": reason.value,
                "new_stock": variant.stock,
            },
        )
        return VariantInfo.from_model(variant)


class UserService:
    """Console user management."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def create_user(
        self,
        email: str,
        name: str,
        role: UserRole | str,
        actor_id: UUID,
        actor_role: UserRole | str,
    ) -> UserInfo:
        """
        Create a user.

        Raises:
            ValidationError: malformed email, name or role.
            DuplicateEmailError: email already registered.
            ForbiddenError: a non-owner tries to create an owner.
        """
        try:
            role = UserRole(role)
        except ValueError as exc:
            raise ValidationError(f"Unknown role: {role!r}", field="role") from exc

        if role == UserRole.OWNER and UserRole(actor_role) != UserRole.OWNER:
            logger.warning(
                "owner_creation_denied",
                extra={"actor_id": str(actor_id), "actor_role": str(UserRole(actor_role).value)},
            )
            raise ForbiddenError(
                role=UserRole(actor_role).value,
                permission="user.manage",
                reason="Only an owner can create another owner",
            )

        return self._insert_user(email, name, role, actor_id)

    def bootstrap_owner(self, email: str, name: str, actor_id: UUID) -> UserInfo:
        """
        Create the first owner of an empty installation.

        Raises:
            ValidationError: users already exist.
        """
        count = self._session.execute(select(func.count(User.id))).scalar_one()
        if count:
            raise ValidationError("Users already exist; bootstrap is only for an empty install")
        return self._insert_user(email, name, UserRole.OWNER, actor_id)

    def get_by_email(self, email: str) -> UserInfo | None:
        user = self._session.execute(
            select(User).where(User.email == _normalize_email(email))
        ).scalar_one_or_none()
        return UserInfo.from_model(user) if user is not None else None

    def list_users(self) -> list[UserInfo]:
        users = self._session.execute(select(User).order_by(User.email)).scalars()
        return [UserInfo.from_model(u) for u in users]

    def _insert_user(self, email: str, name: str, role: UserRole, actor_id: UUID) -> UserInfo:
        email = _normalize_email(email)
        name = require_text(name, "name")

        existing = self._session.execute(
            select(User.id).where(User.email == email)
        ).scalar_one_or_none()
        if existing is not None:
            raise DuplicateEmailError(email)

        user = User(
            email=email,
            name=name,
            role=role.value,
            is_active=True,
            created_by_id=actor_id,
            created_at=self._clock.now(),
            updated_at=self._clock.now(),
        )
        self._session.add(user)
        self._session.flush()
        logger.info(
            "user_created",
            extra={"user_id": str(user.id), "role": role.value},
        )
        return UserInfo.from_model(user)


def _normalize_email(email: Any) -> str:
    email = require_text(email, "email").lower()
    local, _, domain = email.partition("@")
    if not local or "." not in domain:
        raise ValidationError(f"Invalid email address: {email}", field="email")
    return email
