from __future__ import annotations

import json
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import httpx
import pytest

from shopsync.adapters.distributor import DistributorOrderSubmitter, build_order_request
from shopsync.domain.model import Address, OrderLine, OrderRequest
from shopsync.domain.ports.orders import OrderSubmissionError
from tests.helpers.catalog import TEST_BASE_URL, make_distributor_config
from tests.helpers.http import make_client_factory

if TYPE_CHECKING:
    from collections.abc import Callable

BILLING = Address(
    first_name="Ada",
    last_name="Lovelace",
    address="1 Main St",
    zip_code="10001",
    city="New York",
    state="NY",
)


def _request(*, shipping: Address | None = None) -> OrderRequest:
    return OrderRequest(
        reference="1001",
        email="ada@example.com",
        billing=BILLING,
        lines=(OrderLine(sku=" AZ-1 ", quantity=2), OrderLine(sku="AZ-2", quantity=0)),
        shipping=shipping,
        source_ref1="shop-1001",
    )


def _submitter(handler: Callable[[httpx.Request], httpx.Response]) -> DistributorOrderSubmitter:
    return DistributorOrderSubmitter(
        config=make_distributor_config(),
        client_factory=make_client_factory(handler),
        testing=True,
    )


def test_order_payload_defaults_shipping_to_billing() -> None:
    request = _request()

    payload = build_order_request(
        make_distributor_config(), request, request.billable_lines(), testing=True
    )

    order = payload.sc_order
    assert order.ord_same_address_flg is True
    assert order.ord_shipping_address == "1 Main St"
    assert order.ord_shipping_city == "New York"
    assert order.ord_srcref1 == "shop-1001"
    assert order.ord_srcref2 is None
    assert [(i.item_code, i.item_qty) for i in order.sc_items] == [("AZ-1", 2), ("AZ-2", 1)]
    assert payload.testing == 1


def test_separate_shipping_address_clears_same_address_flag() -> None:
    shipping = Address(first_name="Bob", address="9 Side Rd", city="Boston", state="MA")
    request = _request(shipping=shipping)

    order = build_order_request(make_distributor_config(), request, request.lines).sc_order

    assert order.ord_same_address_flg is False
    assert order.ord_shipping_firstname == "Bob"
    assert order.ord_shipping_lastname == "Lovelace"
    assert order.ord_shipping_city == "Boston"


def test_submit_returns_confirmation() -> None:
    bodies: list[dict[str, Any]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert str(request.url) == f"{TEST_BASE_URL}order/process"
        bodies.append(json.loads(request.content))
        return httpx.Response(
            200, json={"sc_order": {"orh_orh_id": "ORD-9", "orh_ordtotal": "31.00"}}
        )

    request = _request()
    confirmation = _submitter(handler)(request, request.billable_lines())

    assert confirmation.distributor_order_id == "ORD-9"
    assert confirmation.total == Decimal("31.00")
    assert bodies[0]["api_id"] == "test-api-id"
    assert bodies[0]["testing"] == 1
    assert bodies[0]["sc_order"]["distributor_id"] == "AZT"


@pytest.mark.parametrize(
    ("response", "message"),
    [
        (httpx.Response(502), "HTTP 502"),
        (httpx.Response(200, json={"error": "Unknown item AZ-2"}), "API Error: Unknown item AZ-2"),
        (httpx.Response(200, json={"sc_order": {}}), "Invalid response structure"),
        (httpx.Response(200, json=["unexpected"]), "Invalid response structure"),
        (httpx.Response(200, content=b"not json"), "Invalid JSON response"),
    ],
)
def test_submit_maps_failures(response: httpx.Response, message: str) -> None:
    request = _request()

    with pytest.raises(OrderSubmissionError, match=message):
        _submitter(lambda _request: response)(request, request.billable_lines())
