"""
stockline_services.rbac_authority -- role/permission enforcement at the
operation boundary.

Responsibility:
    Decide whether an actor's role grants the permission an engine
    operation requires.  Role -> permission grants come from
    ``RbacConfig`` (YAML); the operation -> permission map is fixed here.

Architecture position:
    Services layer.  Called by ``InventoryEngine`` before any transaction is
    opened.

Invariants:
    - Kernel remains actor-agnostic; it only ever sees ``actor_id``.
    - Fail closed: a role with no configured grants may do nothing.
"""

from __future__ import annotations

from stockline_config.schema import RbacConfig
from stockline_kernel.exceptions import ForbiddenError
from stockline_kernel.logging_config import get_logger
from stockline_kernel.models.user import UserRole

logger = get_logger("services.rbac")

ORDER_CREATE = "order.create"
ORDER_FULFILL = "order.fulfill"
ORDER_CANCEL = "order.cancel"
ORDER_VIEW = "order.view"
DASHBOARD_VIEW = "dashboard.view"
CATALOG_MANAGE = "catalog.manage"
PURCHASE_ORDER_MANAGE = "purchase_order.manage"
STOCK_ADJUST = "stock.adjust"
USER_MANAGE = "user.manage"

# operation name -> permission string
OPERATION_TO_PERMISSION: dict[str, str] = {
    "create_order": ORDER_CREATE,
    "fulfill_order": ORDER_FULFILL,
    "cancel_order": ORDER_CANCEL,
    "get_order": ORDER_VIEW,
    "get_dashboard_summary": DASHBOARD_VIEW,
    "create_product": CATALOG_MANAGE,
    "create_variant": CATALOG_MANAGE,
    "create_supplier": CATALOG_MANAGE,
    "list_variants": ORDER_VIEW,
    "create_purchase_order": PURCHASE_ORDER_MANAGE,
    "confirm_purchase_order": PURCHASE_ORDER_MANAGE,
    "receive_purchase_order": PURCHASE_ORDER_MANAGE,
    "get_purchase_order": PURCHASE_ORDER_MANAGE,
    "adjust_stock": STOCK_ADJUST,
    "reconcile_stock": STOCK_ADJUST,
    "create_user": USER_MANAGE,
}


def get_permission_for_operation(operation: str) -> str | None:
    """Return the permission an operation requires, or None if it is unmapped."""
    return OPERATION_TO_PERMISSION.get(operation)


def check_rbac(rbac: RbacConfig, role: UserRole, required_permission: str) -> tuple[bool, str]:
    """Check whether ``role`` holds ``required_permission``.

    Returns:
        (allowed, reason).  reason is empty when allowed, or a short message
        when denied.
    """
    granted = rbac.permissions_for(role.value)
    if not granted:
        return (False, f"RBAC: role '{role.value}' has no configured permissions")
    if required_permission not in granted:
        return (False, f"RBAC: permission '{required_permission}' not granted to role '{role.value}'")
    return (True, "")


class RbacAuthority:
    """Raises ForbiddenError when a role may not run an operation."""

    def __init__(self, rbac: RbacConfig):
        self._rbac = rbac

    def require(self, role: UserRole, operation: str) -> str:
        """Authorize ``operation`` for ``role``; returns the permission checked.

        Raises:
            ForbiddenError: the role lacks the permission, or the operation
                has no permission mapping.
        """
        permission = get_permission_for_operation(operation)
        if permission is None:
            raise ForbiddenError(
                role=role.value,
                permission=operation,
                reason=f"RBAC: operation '{operation}' has no permission mapping",
            )
        allowed, reason = check_rbac(self._rbac, role, permission)
        if not allowed:
            logger.warning(
                "operation_forbidden",
                extra={
                    "role": role.value,
                    "permission": permission,
                    "operation": operation,
                },
            )
            raise ForbiddenError(role=role.value, permission=permission, reason=reason)
        return permission
