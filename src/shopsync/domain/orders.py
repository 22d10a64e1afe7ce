"""Application service for forwarding merchant orders."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from shopsync.domain.model import OrderStatus, OrderSubmissionResult
from shopsync.domain.ports.orders import OrderSubmissionError

if TYPE_CHECKING:
    from shopsync.domain.model import OrderRequest
    from shopsync.domain.ports.orders import OrderSubmitter

log = logging.getLogger(__name__)


def submit_order(request: OrderRequest, *, submitter: OrderSubmitter) -> OrderSubmissionResult:
    """Send ``request`` once and report the outcome without raising."""

    lines = request.billable_lines()
    if not lines:
        log.warning("Order %s has no lines with a SKU, nothing sent", request.reference)
        return OrderSubmissionResult(status=OrderStatus.NO_ITEMS, message="No items to process")

    log.info("Submitting order %s with %d lines", request.reference, len(lines))
    try:
        confirmation = submitter(request, lines)
    except OrderSubmissionError as exc:
        log.error("Order %s rejected: %s", request.reference, exc)
        return OrderSubmissionResult(status=OrderStatus.ERROR, message=str(exc))

    log.info(
        "Order %s accepted as distributor order %s",
        request.reference,
        confirmation.distributor_order_id,
    )
    return OrderSubmissionResult(
        status=OrderStatus.SUCCESS,
        message=f"Distributor order {confirmation.distributor_order_id}",
        confirmation=confirmation,
    )
