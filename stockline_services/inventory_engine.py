"""
stockline_services.inventory_engine -- the operation surface.

Responsibility:
    One method per exposed operation.  Each call:

        1. authorizes the actor's role (RbacAuthority),
        2. binds log context (correlation id, actor, operation),
        3. opens exactly one transaction (session_scope) and binds the
           change notifier to it,
        4. delegates to the lifecycle / catalog / reporting service,
        5. commits; committed stock changes are then published.

    Domain errors (validation, stock, state, auth) propagate unchanged.
    Persistence failures (SQLAlchemyError, ConcurrencyError) are wrapped in
    OperationFailedError carrying the original cause code.  The engine never
    retries.

Architecture position:
    Services layer.  The only place that combines config, identity, RBAC,
    the transaction boundary and the modules.

Usage:
    engine = InventoryEngine.from_config(get_active_config())
    owner = engine.bootstrap_owner("owner@example.com", "Olive Owner")
    token = engine.login("owner@example.com")
    actor = engine.resolve(token)
    order = engine.create_order(actor, [(variant_id, 2)], CustomerInfo("Ana"))
    engine.fulfill_order(actor, order.id, FulfillmentMode.FULL)
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Callable, Mapping, Sequence, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from stockline_config.schema import (
    EngineConfig,
    NumberingConfig,
    RbacConfig,
    ReportingConfig,
)
from stockline_kernel.db.engine import create_engine_from_url, session_scope
from stockline_kernel.db.immutability import register_immutability_listeners
from stockline_kernel.domain.clock import Clock, SystemClock
from stockline_kernel.domain.dtos import ReconciliationResult, StockReason
from stockline_kernel.domain.notifier import ChangeNotifier, NullNotifier
from stockline_kernel.exceptions import (
    ConcurrencyError,
    OperationFailedError,
    UnauthorizedError,
)
from stockline_kernel.logging_config import LogContext, get_logger
from stockline_kernel.models.user import UserRole
from stockline_kernel.selectors.stock_selector import StockSelector
from stockline_kernel.services.change_dispatch import bind_notifier
from stockline_modules._orm_registry import create_all_tables
from stockline_modules.catalog import (
    CatalogService,
    ProductInfo,
    SupplierInfo,
    UserInfo,
    UserService,
    VariantInfo,
)
from stockline_modules.purchasing import (
    PurchaseLineRequest,
    PurchaseOrderDTO,
    PurchaseOrderService,
    ReceivedItem,
)
from stockline_modules.reporting import DashboardSummary, ReportingService
from stockline_modules.sales import (
    CustomerInfo,
    FulfillmentMode,
    OrderLineRequest,
    SalesOrderDTO,
    SalesOrderService,
)
from stockline_services.identity import Actor, TokenRegistry
from stockline_services.notifier import build_notifier
from stockline_services.rbac_authority import RbacAuthority

logger = get_logger("services.inventory_engine")

T = TypeVar("T")

# created_by_id for records written before any user exists
SYSTEM_ACTOR_ID = UUID(int=0)


class InventoryEngine:
    """Authorization + transaction boundary + error mapping."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        rbac: RbacConfig,
        clock: Clock | None = None,
        notifier: ChangeNotifier | None = None,
        numbering: NumberingConfig | None = None,
        reporting: ReportingConfig | None = None,
        tokens: TokenRegistry | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._notifier = notifier or NullNotifier()
        self._numbering = numbering or NumberingConfig()
        self._reporting = reporting or ReportingConfig()
        self._authority = RbacAuthority(rbac)
        self._tokens = tokens or TokenRegistry(clock=self._clock)
        self._db_engine: Engine | None = None
        register_immutability_listeners()

    @classmethod
    def from_config(
        cls,
        config: EngineConfig,
        clock: Clock | None = None,
        notifier: ChangeNotifier | None = None,
        create_schema: bool = True,
    ) -> InventoryEngine:
        """Build an engine, its database connection and notifier from config."""
        db = config.database
        db_engine = create_engine_from_url(
            db.url,
            echo=db.echo,
            pool_size=db.pool_size,
            max_overflow=db.max_overflow,
            sqlite_busy_timeout=db.sqlite_busy_timeout,
        )
        if create_schema:
            create_all_tables(db_engine)
        clock = clock or SystemClock()
        instance = cls(
            session_factory=sessionmaker(bind=db_engine, expire_on_commit=False),
            rbac=config.rbac,
            clock=clock,
            notifier=notifier or build_notifier(config.notifier),
            numbering=config.numbering,
            reporting=config.reporting,
            tokens=TokenRegistry(clock=clock, ttl_seconds=config.identity.token_ttl_seconds),
        )
        instance._db_engine = db_engine
        logger.info(
            "inventory_engine_configured",
            extra={
                "config_id": config.config_id,
                "config_version": config.version,
                "dialect": db_engine.dialect.name,
                "notifier_kind": config.notifier.kind,
            },
        )
        return instance

    def close(self) -> None:
        """Stop a background notifier and dispose a config-built connection pool."""
        stop = getattr(self._notifier, "stop", None)
        if callable(stop):
            stop()
        if self._db_engine is not None:
            self._db_engine.dispose()
            self._db_engine = None

    @property
    def notifier(self) -> ChangeNotifier:
        return self._notifier

    # -------------------------------------------------------------------------
    # Identity
    # -------------------------------------------------------------------------

    def bootstrap_owner(self, email: str, name: str) -> UserInfo:
        """Create the first Owner of an empty installation (no actor yet)."""
        return self._transact(
            "bootstrap_owner",
            SYSTEM_ACTOR_ID,
            lambda s: UserService(s, self._clock).bootstrap_owner(email, name, SYSTEM_ACTOR_ID),
        )

    def login(self, email: str) -> str:
        """Issue a token for an active user whose credentials were verified upstream.

        Raises:
            UnauthorizedError: unknown or inactive user.
        """
        user = self._transact(
            "login",
            SYSTEM_ACTOR_ID,
            lambda s: UserService(s, self._clock).get_by_email(email),
        )
        if user is None or not user.is_active:
            logger.warning("login_rejected")
            raise UnauthorizedError("Unknown or inactive user")
        return self._tokens.login(Actor(user_id=user.id, role=user.role))

    def logout(self, token: str) -> None:
        self._tokens.logout(token)

    def resolve(self, token: str) -> Actor:
        return self._tokens.resolve(token)

    # -------------------------------------------------------------------------
    # Sales orders
    # -------------------------------------------------------------------------

    def create_order(
        self,
        actor: Actor,
        items: Sequence[OrderLineRequest | tuple],
        customer: CustomerInfo,
    ) -> SalesOrderDTO:
        return self._run(
            actor,
            "create_order",
            lambda s: self._sales(s).create_order(items, customer, actor.user_id),
        )

    def fulfill_order(
        self,
        actor: Actor,
        order_id: UUID,
        mode: FulfillmentMode | str,
        lines: Mapping[UUID, int] | None = None,
    ) -> SalesOrderDTO:
        return self._run(
            actor,
            "fulfill_order",
            lambda s: self._sales(s).fulfill(order_id, mode, actor.user_id, lines=lines),
            order_id=str(order_id),
        )

    def cancel_order(self, actor: Actor, order_id: UUID) -> SalesOrderDTO:
        return self._run(
            actor,
            "cancel_order",
            lambda s: self._sales(s).cancel(order_id, actor.user_id),
            order_id=str(order_id),
        )

    def get_order(self, actor: Actor, order_id: UUID) -> SalesOrderDTO:
        return self._run(
            actor,
            "get_order",
            lambda s: self._sales(s).get_order(order_id),
            order_id=str(order_id),
        )

    # -------------------------------------------------------------------------
    # Purchase orders
    # -------------------------------------------------------------------------

    def create_purchase_order(
        self,
        actor: Actor,
        supplier_id: UUID,
        items: Sequence[PurchaseLineRequest | tuple],
        notes: str | None = None,
    ) -> PurchaseOrderDTO:
        return self._run(
            actor,
            "create_purchase_order",
            lambda s: self._purchasing(s).create_purchase_order(
                supplier_id, items, actor.user_id, notes=notes
            ),
        )

    def confirm_purchase_order(self, actor: Actor, po_id: UUID) -> PurchaseOrderDTO:
        return self._run(
            actor,
            "confirm_purchase_order",
            lambda s: self._purchasing(s).confirm(po_id, actor.user_id),
            order_id=str(po_id),
        )

    def receive_purchase_order(
        self,
        actor: Actor,
        po_id: UUID,
        received_items: Sequence[ReceivedItem | tuple],
    ) -> PurchaseOrderDTO:
        return self._run(
            actor,
            "receive_purchase_order",
            lambda s: self._purchasing(s).receive(po_id, received_items, actor.user_id),
            order_id=str(po_id),
        )

    def get_purchase_order(self, actor: Actor, po_id: UUID) -> PurchaseOrderDTO:
        return self._run(
            actor,
            "get_purchase_order",
            lambda s: self._purchasing(s).get_purchase_order(po_id),
            order_id=str(po_id),
        )

    # -------------------------------------------------------------------------
    # Reporting
    # -------------------------------------------------------------------------

    def get_dashboard_summary(self, actor: Actor) -> DashboardSummary:
        return self._run(
            actor,
            "get_dashboard_summary",
            lambda s: ReportingService(
                s,
                self._clock,
                top_selling_window_days=self._reporting.top_selling_window_days,
                top_selling_limit=self._reporting.top_selling_limit,
                movement_window_days=self._reporting.movement_window_days,
            ).dashboard_summary(),
        )

    # -------------------------------------------------------------------------
    # Catalog / stock
    # -------------------------------------------------------------------------

    def create_product(
        self,
        actor: Actor,
        name: str,
        description: str | None = None,
        category: str | None = None,
    ) -> ProductInfo:
        return self._run(
            actor,
            "create_product",
            lambda s: CatalogService(s, self._clock).create_product(
                name, actor.user_id, description=description, category=category
            ),
        )

    def create_variant(
        self,
        actor: Actor,
        product_id: UUID,
        sku: str,
        price: Decimal | int | str,
        minimum_stock: int = 0,
        attributes: Mapping[str, Any] | None = None,
        initial_stock: int = 0,
    ) -> VariantInfo:
        return self._run(
            actor,
            "create_variant",
            lambda s: CatalogService(s, self._clock).create_variant(
                product_id,
                sku,
                price,
                actor.user_id,
                minimum_stock=minimum_stock,
                attributes=attributes,
                initial_stock=initial_stock,
            ),
        )

    def list_variants(self, actor: Actor) -> list[VariantInfo]:
        return self._run(
            actor,
            "list_variants",
            lambda s: CatalogService(s, self._clock).list_variants(),
        )

    def create_supplier(
        self,
        actor: Actor,
        name: str,
        contact_name: str | None = None,
        email: str | None = None,
        phone: str | None = None,
        address: str | None = None,
    ) -> SupplierInfo:
        return self._run(
            actor,
            "create_supplier",
            lambda s: CatalogService(s, self._clock).create_supplier(
                name,
                actor.user_id,
                contact_name=contact_name,
                email=email,
                phone=phone,
                address=address,
            ),
        )

    def adjust_stock(
        self,
        actor: Actor,
        variant_id: UUID,
        delta: int,
        reason: StockReason | str = StockReason.ADJUSTMENT,
        reference: str | None = None,
    ) -> VariantInfo:
        return self._run(
            actor,
            "adjust_stock",
            lambda s: CatalogService(s, self._clock).adjust_stock(
                variant_id, delta, reason, actor.user_id, reference=reference
            ),
            variant_id=str(variant_id),
        )

    def reconcile_stock(
        self,
        actor: Actor,
        variant_id: UUID | None = None,
    ) -> list[ReconciliationResult]:
        """Compare stored stock against the ledger for one or all variants."""

        def _reconcile(session: Session) -> list[ReconciliationResult]:
            selector = StockSelector(session)
            if variant_id is not None:
                return [selector.reconcile(variant_id)]
            results = selector.reconcile_all()
            unbalanced = [r for r in results if not r.is_balanced]
            if unbalanced:
                logger.error(
                    "stock_ledger_discrepancy",
                    extra={
                        "variant_count": len(unbalanced),
                        "skus": [r.sku for r in unbalanced],
                    },
                )
            return results

        return self._run(
            actor,
            "reconcile_stock",
            _reconcile,
            variant_id=str(variant_id) if variant_id is not None else None,
        )

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    def create_user(
        self,
        actor: Actor,
        email: str,
        name: str,
        role: UserRole | str,
    ) -> UserInfo:
        return self._run(
            actor,
            "create_user",
            lambda s: UserService(s, self._clock).create_user(
                email, name, role, actor.user_id, actor.role
            ),
        )

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _sales(self, session: Session) -> SalesOrderService:
        return SalesOrderService(
            session,
            self._clock,
            number_prefix=self._numbering.sales_order_prefix,
            number_width=self._numbering.width,
        )

    def _purchasing(self, session: Session) -> PurchaseOrderService:
        return PurchaseOrderService(
            session,
            self._clock,
            number_prefix=self._numbering.purchase_order_prefix,
            number_width=self._numbering.width,
        )

    def _run(
        self,
        actor: Actor,
        operation: str,
        work: Callable[[Session], T],
        **context: str | None,
    ) -> T:
        if not isinstance(actor, Actor):
            raise UnauthorizedError("An authenticated actor is required")
        self._authority.require(actor.role, operation)
        return self._transact(operation, actor.user_id, work, **context)

    def _transact(
        self,
        operation: str,
        actor_id: UUID,
        work: Callable[[Session], T],
        **context: str | None,
    ) -> T:
        with LogContext.bind(
            correlation_id=uuid4().hex,
            actor_id=str(actor_id),
            operation=operation,
            **context,
        ):
            try:
                with session_scope(self._session_factory) as session:
                    bind_notifier(session, self._notifier)
                    return work(session)
            except ConcurrencyError as exc:
                logger.warning("operation_failed", extra={"cause_code": exc.code})
                raise OperationFailedError(operation, exc.code, str(exc)) from exc
            except SQLAlchemyError as exc:
                cause = type(exc).__name__
                logger.error("operation_failed", extra={"cause_code": cause})
                detail = next(iter(str(exc).splitlines()), "")
                raise OperationFailedError(operation, cause, detail) from exc
