from __future__ import annotations

import json
from decimal import Decimal
from pathlib import Path

import pytest

from shopsync.adapters.distributor import ItemPayload, ProductSyncResponse, parse_page
from shopsync.adapters.distributor.schema import OrderProcessResponse
from shopsync.adapters.distributor.translator import parse_order_confirmation

FIXTURES = Path(__file__).resolve().parents[2] / "data" / "distributor"


@pytest.fixture
def page_payload() -> dict[str, object]:
    return json.loads((FIXTURES / "product_sync_page.json").read_text())


def test_parse_page_normalises_items(page_payload: dict[str, object]) -> None:
    response = ProductSyncResponse.model_validate(page_payload)

    page = parse_page(
        response,
        requested_page=1,
        image_url_for="https://images.test/{}.png".format,
    )

    assert (page.page_number, page.total_pages, page.total_items) == (1, 3, 5)
    assert page.categories == ["Candle Holders", "Brass Decor"]
    assert page.dropped == 1
    assert [item.sku for item in page.items] == ["AZ-1001", "AZ-1002"]

    holder, bowl = page.items
    assert holder.stock_quantity == 12
    assert holder.price == Decimal("4.50")
    assert holder.retail_price == Decimal("12.99")
    assert holder.dimensions == "4;3;2;0.5"
    assert holder.category == "Candle Holders"
    assert holder.image_url == "https://images.test/AZ-1001.png"
    assert holder.unit_of_measure == "EA"

    assert bowl.stock_quantity == 0
    assert bowl.price == Decimal(0)
    assert bowl.retail_price == Decimal(0)


def test_parse_page_defaults_missing_paging_fields() -> None:
    response = ProductSyncResponse.model_validate(
        {"item_catalog": {"items": [{"esm_code": "A"}, {"esm_code": "B"}]}}
    )

    page = parse_page(response, requested_page=4)

    assert (page.page_number, page.total_pages, page.total_items) == (4, 1, 2)


def test_flat_response_shape_is_accepted() -> None:
    response = ProductSyncResponse.model_validate(
        {"items": [{"item_code": "A-1", "stock_status": 2}], "page_total": 1}
    )

    page = parse_page(response, requested_page=1)

    assert [item.sku for item in page.items] == ["A-1"]
    assert page.items[0].stock_quantity == 2


def test_malformed_record_is_dropped() -> None:
    response = ProductSyncResponse.model_validate(
        {"item_catalog": {"items": [{"esm_code": "A", "esm_description": {"nested": 1}}]}}
    )

    page = parse_page(response, requested_page=1)

    assert page.items == []
    assert page.dropped == 1


def test_out_of_range_numbers_fall_back_to_defaults() -> None:
    response = ProductSyncResponse.model_validate(
        {
            "item_catalog": {
                "page_total": "inf",
                "item_total": "1e400",
                "items": [
                    {"esm_code": "GOOD-1", "stock_status": 3, "retail_price": "9.99"},
                    {
                        "esm_code": "BAD-1",
                        "stock_status": "1e400",
                        "us_price": "Infinity",
                        "retail_price": "NaN",
                    },
                ],
            }
        }
    )

    page = parse_page(response, requested_page=1)

    assert [item.sku for item in page.items] == ["GOOD-1", "BAD-1"]
    assert (page.total_pages, page.total_items) == (1, 2)
    good, bad = page.items
    assert good.stock_quantity == 3
    assert good.retail_price == Decimal("9.99")
    assert bad.stock_quantity == 0
    assert bad.price == Decimal(0)
    assert bad.retail_price == Decimal(0)


def test_item_payload_accepts_either_dimension_spelling() -> None:
    assert ItemPayload.model_validate({"esm_code": "A", "dimensions": "1;2;3"}).dimensions == "1;2;3"
    assert ItemPayload.model_validate({"esm_code": "A", "dimmensions": "1;2;3"}).dimensions == (
        "1;2;3"
    )


def test_parse_order_confirmation() -> None:
    response = OrderProcessResponse.model_validate(
        {
            "sc_order": {
                "orh_orh_id": 98765,
                "orh_ordtotal": "120.40",
                "orh_orddate": "2026-03-01",
                "sc_items": [{"item_code": "AZ-1", "item_qty": 2}],
            }
        }
    )
    assert response.sc_order is not None

    confirmation = parse_order_confirmation(response.sc_order)

    assert confirmation.distributor_order_id == "98765"
    assert confirmation.total == Decimal("120.40")
    assert confirmation.items == ({"item_code": "AZ-1", "item_qty": 2},)
