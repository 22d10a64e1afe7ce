"""Order submission against the distributor order endpoint."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from shopsync.adapters.http_resilience import default_client_factory
from shopsync.config.distributor import get_distributor_config
from shopsync.domain.model import Address
from shopsync.domain.ports.orders import OrderSubmissionError, OrderSubmitter

from .client import endpoint_url
from .schema import OrderItemPayload, OrderPayload, OrderProcessRequest, OrderProcessResponse
from .translator import parse_order_confirmation

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from shopsync.adapters.http_resilience import ResilientClient
    from shopsync.config.distributor import DistributorConfig
    from shopsync.config.http_resilience import ResilienceConfig
    from shopsync.domain.model import OrderConfirmation, OrderLine, OrderRequest

log = getLogger(__name__)

ORDER_PROCESS_ENDPOINT = "order/process"


def build_order_request(
    config: DistributorConfig,
    request: OrderRequest,
    lines: Sequence[OrderLine],
    *,
    testing: bool = False,
) -> OrderProcessRequest:
    """Map an order onto the distributor payload; shipping falls back to billing."""

    billing = request.billing
    shipping = request.shipping or Address()
    return OrderProcessRequest(
        api_id=config.api_id,
        sc_order=OrderPayload(
            distributor_id=config.distributor_id,
            ord_instructions=request.instructions,
            ord_locale=config.locale,
            ord_ip_address=request.ip_address,
            ord_requestoremail=request.email,
            ord_requestorphone=request.phone,
            ord_requestor_firstname=billing.first_name,
            ord_requestor_lastname=billing.last_name,
            ord_requestor_address=billing.address,
            ord_requestor_zip=billing.zip_code,
            ord_requestor_city=billing.city,
            ord_requestor_state=billing.state,
            ord_same_address_flg=request.shipping is None or billing.same_location_as(shipping),
            ord_shipping_firstname=shipping.first_name or billing.first_name,
            ord_shipping_lastname=shipping.last_name or billing.last_name,
            ord_shipping_address=shipping.address or billing.address,
            ord_shipping_zip=shipping.zip_code or billing.zip_code,
            ord_shipping_city=shipping.city or billing.city,
            ord_shipping_state=shipping.state or billing.state,
            ord_srcref1=request.source_ref1 or None,
            ord_srcref2=request.source_ref2 or None,
            sc_items=[
                OrderItemPayload(item_code=(line.sku or "").strip(), item_qty=max(line.quantity, 1))
                for line in lines
            ],
        ),
        testing=1 if testing else None,
    )


@dataclass(slots=True)
class DistributorOrderSubmitter:
    """Posts an order exactly once; the order client never replays a POST."""

    config: DistributorConfig = field(default_factory=get_distributor_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=default_client_factory
    )
    testing: bool = False

    def __call__(self, request: OrderRequest, lines: Sequence[OrderLine]) -> OrderConfirmation:
        payload = build_order_request(self.config, request, lines, testing=self.testing)
        try:
            return asyncio.run(self._submit_async(payload))
        except httpx.HTTPStatusError as exc:
            raise OrderSubmissionError(f"HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise OrderSubmissionError(f"HTTP request failed: {exc}") from exc
        except ValidationError as exc:
            raise OrderSubmissionError("Invalid response structure") from exc
        except ValueError as exc:
            raise OrderSubmissionError(f"Invalid JSON response: {exc}") from exc

    async def _submit_async(self, payload: OrderProcessRequest) -> OrderConfirmation:
        resilience = self.config.order_resilience
        async with self.client_factory(resilience) as client:
            response = await client.post(
                endpoint_url(resilience, ORDER_PROCESS_ENDPOINT),
                json=payload.model_dump(mode="json", exclude_none=True),
            )
        response.raise_for_status()

        body: Any = response.json()
        if not isinstance(body, dict):
            raise OrderSubmissionError("Invalid response structure")
        parsed = OrderProcessResponse.model_validate(body)
        if parsed.error:
            raise OrderSubmissionError(f"API Error: {parsed.error}")
        if parsed.sc_order is None or not parsed.sc_order.orh_orh_id:
            raise OrderSubmissionError("Invalid response structure")
        return parse_order_confirmation(parsed.sc_order)


if TYPE_CHECKING:
    _submitter_check: OrderSubmitter = DistributorOrderSubmitter()
