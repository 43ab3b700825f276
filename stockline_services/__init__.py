"""
stockline_services -- the operation surface and its collaborators.

inventory_engine  -- InventoryEngine: authorization, transaction boundary,
                     error mapping for every exposed operation
identity          -- Actor, IdentityResolver, TokenRegistry
rbac_authority    -- role -> permission enforcement
notifier          -- ChangeNotifier implementations
"""

from stockline_services.identity import Actor, IdentityResolver, TokenRegistry
from stockline_services.inventory_engine import SYSTEM_ACTOR_ID, InventoryEngine
from stockline_services.notifier import (
    InMemoryNotifier,
    LoggingNotifier,
    QueuedNotifier,
    build_notifier,
)
from stockline_services.rbac_authority import RbacAuthority, check_rbac

__all__ = [
    "InventoryEngine",
    "SYSTEM_ACTOR_ID",
    "Actor",
    "IdentityResolver",
    "TokenRegistry",
    "RbacAuthority",
    "check_rbac",
    "InMemoryNotifier",
    "LoggingNotifier",
    "QueuedNotifier",
    "build_notifier",
]
