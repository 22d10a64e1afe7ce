"""Order submission values."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from shopsync.domain.model.enums import OrderStatus


@dataclass(frozen=True, slots=True)
class Address:
    first_name: str = ""
    last_name: str = ""
    address: str = ""
    zip_code: str = ""
    city: str = ""
    state: str = ""

    def same_location_as(self, other: Address) -> bool:
        return (
            self.address == other.address
            and self.city == other.city
            and self.state == other.state
            and self.zip_code == other.zip_code
        )


@dataclass(frozen=True, slots=True)
class OrderLine:
    sku: str | None
    quantity: int = 1


@dataclass(frozen=True, slots=True)
class OrderRequest:
    """A merchant order to forward to the distributor."""

    reference: str
    email: str
    billing: Address
    lines: tuple[OrderLine, ...]
    shipping: Address | None = None
    phone: str = ""
    ip_address: str = ""
    instructions: str = ""
    source_ref1: str = ""
    source_ref2: str = ""

    def billable_lines(self) -> list[OrderLine]:
        """Lines that can be sent; lines without a SKU are dropped."""
        return [line for line in self.lines if line.sku and line.sku.strip()]


@dataclass(frozen=True, slots=True)
class OrderConfirmation:
    distributor_order_id: str
    total: Decimal | None = None
    order_date: str | None = None
    items: tuple[dict[str, object], ...] = ()


@dataclass(frozen=True, slots=True)
class OrderSubmissionResult:
    status: OrderStatus
    message: str = ""
    confirmation: OrderConfirmation | None = None
    raw: dict[str, object] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status is OrderStatus.SUCCESS
