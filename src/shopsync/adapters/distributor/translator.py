"""Translate distributor payloads into canonical catalog values."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from pydantic import ValidationError

from shopsync.domain.model import CatalogItem, OrderConfirmation, PageResult

from .schema import ItemPayload, OrderConfirmationPayload, ProductSyncResponse

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping


log = getLogger(__name__)


def parse_catalog_item(
    payload: Mapping[str, object] | ItemPayload,
    *,
    image_url_for: Callable[[str], str] | None = None,
) -> CatalogItem | None:
    """Return the canonical item, or ``None`` when the record has no usable SKU."""

    item = payload if isinstance(payload, ItemPayload) else ItemPayload.model_validate(payload)
    if not item.sku:
        return None
    return CatalogItem(
        sku=item.sku,
        description=item.esm_description,
        stock_quantity=item.stock_status,
        price=item.us_price,
        retail_price=item.retail_price,
        dimensions=item.dimensions,
        category=item.primary_category,
        image_url=image_url_for(item.sku) if image_url_for is not None else None,
        catalog=item.catalog,
        catalog_page=item.catalog_page,
        unit_of_measure=item.esm_uom,
    )


def parse_page(
    response: ProductSyncResponse,
    *,
    requested_page: int,
    image_url_for: Callable[[str], str] | None = None,
) -> PageResult:
    """Normalise one catalog response.

    Missing paging fields fall back to: page number = the page asked for, total pages = 1,
    total items = number of items on the page.
    """

    catalog = response.item_catalog
    if catalog is None:
        return PageResult(page_number=requested_page, total_pages=1, total_items=0)

    items: list[CatalogItem] = []
    dropped = 0
    for raw in catalog.items:
        try:
            item = parse_catalog_item(raw, image_url_for=image_url_for)
        except ValidationError as exc:
            log.warning("Dropping malformed catalog record: %s", exc.errors()[:1])
            dropped += 1
            continue
        if item is None:
            log.warning("Dropping catalog record without an item code")
            dropped += 1
            continue
        items.append(item)

    return PageResult(
        items=items,
        categories=list(catalog.categories),
        page_number=catalog.page_num or requested_page,
        total_pages=catalog.page_total if catalog.page_total is not None else 1,
        total_items=catalog.item_total if catalog.item_total is not None else len(items),
        dropped=dropped,
    )


def parse_order_confirmation(payload: OrderConfirmationPayload) -> OrderConfirmation:
    return OrderConfirmation(
        distributor_order_id=payload.orh_orh_id,
        total=payload.orh_ordtotal,
        order_date=payload.orh_orddate,
        items=tuple(payload.sc_items),
    )
