"""Distributor API configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from shopsync import __version__

from .env import optional_env, require_env_vars
from .http_resilience import (
    IDEMPOTENT_RETRY_METHODS,
    RateLimit,
    ResilienceConfig,
    RetryPolicy,
)

DISTRIBUTOR_BASE_URL = "https://sc.mercature.net/api/v1/"
DISTRIBUTOR_TIMEOUT_SECONDS = 60.0
DEFAULT_DISTRIBUTOR_ID = "AZT"
DEFAULT_LOCALE = "us"
DEFAULT_IMAGE_URL_TEMPLATE = "https://aztecimport.com/static/photos/{sku}.png"


@dataclass(frozen=True)
class DistributorConfig:
    """Holds distributor API credentials and HTTP behaviour."""

    api_id: str
    distributor_id: str
    resilience: ResilienceConfig
    order_resilience: ResilienceConfig
    locale: str = DEFAULT_LOCALE
    image_url_template: str = DEFAULT_IMAGE_URL_TEMPLATE

    def image_url_for(self, sku: str) -> str:
        return self.image_url_template.format(sku=sku)


def build_distributor_resilience(
    base_url: str = DISTRIBUTOR_BASE_URL,
    *,
    ratelimit: RateLimit | None = None,
) -> ResilienceConfig:
    return ResilienceConfig(
        name="distributor",
        base_url=base_url,
        timeout_seconds=DISTRIBUTOR_TIMEOUT_SECONDS,
        # whole-request retries happen in the catalog fetcher; never replay a POST here
        retry=RetryPolicy(total=2, allowed_methods=IDEMPOTENT_RETRY_METHODS),
        ratelimit=ratelimit or RateLimit(max_calls=1, per_seconds=1.0),
        default_headers={
            "Content-Type": "application/json",
            "User-Agent": f"shopsync/{__version__}",
        },
    )


def build_order_resilience(base_url: str = DISTRIBUTOR_BASE_URL) -> ResilienceConfig:
    # Order submission is not idempotent on the distributor side, never replay a POST.
    return ResilienceConfig(
        name="distributor",
        base_url=base_url,
        timeout_seconds=DISTRIBUTOR_TIMEOUT_SECONDS,
        retry=RetryPolicy(total=2, allowed_methods=IDEMPOTENT_RETRY_METHODS),
        ratelimit=RateLimit(max_calls=1, per_seconds=1.0),
        default_headers={
            "Content-Type": "application/json",
            "User-Agent": f"shopsync/{__version__}",
        },
    )


def get_distributor_config() -> DistributorConfig:
    values = require_env_vars(("DISTRIBUTOR_API_ID",))
    base_url = optional_env("DISTRIBUTOR_BASE_URL", DISTRIBUTOR_BASE_URL)
    return DistributorConfig(
        api_id=values["DISTRIBUTOR_API_ID"],
        distributor_id=optional_env("DISTRIBUTOR_ID", DEFAULT_DISTRIBUTOR_ID),
        locale=optional_env("DISTRIBUTOR_LOCALE", DEFAULT_LOCALE),
        image_url_template=optional_env("DISTRIBUTOR_IMAGE_URL_TEMPLATE", DEFAULT_IMAGE_URL_TEMPLATE),
        resilience=build_distributor_resilience(base_url),
        order_resilience=build_order_resilience(base_url),
    )


def build_image_resilience(timeout_seconds: float = 30.0) -> ResilienceConfig:
    return ResilienceConfig(
        name="distributor-images",
        timeout_seconds=timeout_seconds,
        retry=RetryPolicy(total=1, allowed_methods=IDEMPOTENT_RETRY_METHODS),
        default_headers={"User-Agent": f"shopsync/{__version__}"},
    )
