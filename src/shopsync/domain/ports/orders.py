"""Port for forwarding orders to the distributor."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from shopsync.domain.model import OrderConfirmation, OrderLine, OrderRequest


class OrderSubmissionError(RuntimeError):
    """The distributor refused the order or could not be reached."""


@runtime_checkable
class OrderSubmitter(Protocol):
    def __call__(self, request: OrderRequest, lines: Sequence[OrderLine]) -> OrderConfirmation:
        """Send the order once. Raises :class:`OrderSubmissionError` on failure."""
        ...


__all__ = ["OrderSubmissionError", "OrderSubmitter"]
