"""Pydantic models describing the distributor API payloads."""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from typing import Any, Literal, cast

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


def _to_text(value: object) -> object:
    if value is None:
        return ""
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, str):
        return value.strip()
    return value


def _to_decimal(value: object) -> Decimal:
    if value is None or isinstance(value, bool):
        return Decimal(0)
    try:
        parsed = Decimal(str(value).strip() or "0")
    except InvalidOperation:
        return Decimal(0)
    # NaN and infinities cannot be compared or stored
    return parsed if parsed.is_finite() else Decimal(0)


def _to_optional_int(value: object) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(float(str(value).strip()))
    except (ValueError, OverflowError):
        return None


class DistributorBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ItemPayload(DistributorBaseModel):
    sku: str = Field(default="", validation_alias=AliasChoices("esm_code", "item_code", "sku"))
    stock_status: int = 0
    us_price: Decimal = Decimal(0)
    retail_price: Decimal = Decimal(0)
    esm_description: str = ""
    # the API spells it "dimmensions"
    dimensions: str = Field(default="", validation_alias=AliasChoices("dimmensions", "dimensions"))
    primary_category: str = ""
    catalog: str = ""
    catalog_page: str = ""
    esm_uom: str = ""

    _normalize_text = field_validator(
        "sku",
        "esm_description",
        "dimensions",
        "primary_category",
        "catalog",
        "catalog_page",
        "esm_uom",
        mode="before",
    )(_to_text)

    @field_validator("stock_status", mode="before")
    @classmethod
    def _parse_stock(cls, value: object) -> int:
        parsed = _to_optional_int(value)
        return max(parsed or 0, 0)

    @field_validator("us_price", "retail_price", mode="before")
    @classmethod
    def _parse_price(cls, value: object) -> Decimal:
        return _to_decimal(value)


class ItemCatalogPayload(DistributorBaseModel):
    items: list[dict[str, Any]] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)
    page_num: int | None = None
    page_total: int | None = None
    item_total: int | None = None

    @field_validator("items", mode="before")
    @classmethod
    def _keep_mappings(cls, value: object) -> object:
        if value is None:
            return []
        if isinstance(value, list):
            return [item for item in cast(list[object], value) if isinstance(item, Mapping)]
        return value

    @field_validator("categories", mode="before")
    @classmethod
    def _clean_categories(cls, value: object) -> object:
        if value is None:
            return []
        if isinstance(value, list):
            names = (str(item).strip() for item in cast(list[object], value) if item is not None)
            return [name for name in names if name]
        return value

    @field_validator("page_num", "page_total", "item_total", mode="before")
    @classmethod
    def _parse_count(cls, value: object) -> int | None:
        return _to_optional_int(value)


class ProductSyncResponse(DistributorBaseModel):
    item_catalog: ItemCatalogPayload | None = None
    error: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _accept_flat_catalog(cls, value: object) -> object:
        # some deployments answer with the catalog fields at the top level
        if isinstance(value, Mapping):
            data = cast(Mapping[str, object], value)
            if "item_catalog" not in data and ("items" in data or "categories" in data):
                return {"item_catalog": dict(data), "error": data.get("error")}
        return value


class ProductSyncRequest(DistributorBaseModel):
    api_id: str
    locale: str = "us"
    sync_mode: Literal["F", "P"] = "P"
    page: int = Field(default=1, ge=1)
    rows: int = Field(default=50, ge=1, le=1000)
    item_sku_csv: str | None = None
    item_category_list: list[str] | None = None


class OrderItemPayload(DistributorBaseModel):
    item_code: str
    item_qty: int = Field(ge=1)


class OrderPayload(DistributorBaseModel):
    distributor_id: str
    ord_instructions: str = ""
    ord_locale: str = "us"
    ord_checkoutmode: str = "standard"
    ord_ip_address: str = ""
    ord_requestoremail: str = ""
    ord_requestorphone: str = ""
    ord_requestor_firstname: str = ""
    ord_requestor_lastname: str = ""
    ord_requestor_address: str = ""
    ord_requestor_zip: str = ""
    ord_requestor_city: str = ""
    ord_requestor_state: str = ""
    ord_same_address_flg: bool = True
    ord_shipping_firstname: str = ""
    ord_shipping_lastname: str = ""
    ord_shipping_address: str = ""
    ord_shipping_zip: str = ""
    ord_shipping_city: str = ""
    ord_shipping_state: str = ""
    ord_srcref1: str | None = None
    ord_srcref2: str | None = None
    sc_items: list[OrderItemPayload]


class OrderProcessRequest(DistributorBaseModel):
    api_id: str
    sc_order: OrderPayload
    testing: int | None = None


class OrderConfirmationPayload(DistributorBaseModel):
    orh_orh_id: str
    orh_ordtotal: Decimal | None = None
    orh_orddate: str | None = None
    sc_items: list[dict[str, Any]] = Field(default_factory=list)

    _normalize_id = field_validator("orh_orh_id", mode="before")(_to_text)

    @field_validator("orh_ordtotal", mode="before")
    @classmethod
    def _parse_total(cls, value: object) -> Decimal | None:
        if value is None or value == "":
            return None
        return _to_decimal(value)


class OrderProcessResponse(DistributorBaseModel):
    sc_order: OrderConfirmationPayload | None = None
    error: str | None = None
