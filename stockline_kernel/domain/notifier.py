"""
Change notifier port.

The kernel publishes ``StockChanged`` events through this interface after a
transaction commits.  Concrete transports (in-memory fan-out, logging, a
background queue) live in ``stockline_services.notifier``.
"""

from typing import Protocol, runtime_checkable

from stockline_kernel.domain.dtos import StockChanged


@runtime_checkable
class ChangeNotifier(Protocol):
    """Receives committed stock changes. Delivery is best-effort."""

    def publish(self, event: StockChanged) -> None:
        ...


class NullNotifier:
    """Discards every event."""

    def publish(self, event: StockChanged) -> None:
        return None
