"""HTTP client for the WooCommerce REST API (``wc/v3``)."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, Protocol

import requests

from orderflow.core.config import get_config
from orderflow.core.exceptions import ConfigurationError, ExternalSyncFailure
from orderflow.schemas.orders import OrderSnapshot

logger = logging.getLogger(__name__)


class OrderSystemClient(Protocol):
    """What the workflow engine needs from the external order system."""

    def fetch_orders(self, tenant_id: int, since: datetime) -> list[OrderSnapshot]: ...

    def push_status(self, tenant_id: int, external_order_id: int, status: str) -> None: ...


class WooCommerceClient:
    """Talks to one store. Every failure surfaces as ``ExternalSyncFailure``.

    Transport errors and 5xx responses are retried with a short linear backoff;
    4xx responses are not.
    """

    def __init__(
        self,
        store_url: str,
        consumer_key: str,
        consumer_secret: str,
        timeout: int = 30,
        page_size: int = 100,
        max_retries: int = 2,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.base_url = f"{store_url.rstrip('/')}/wp-json/wc/v3"
        self.timeout = timeout
        self.page_size = page_size
        self.max_retries = max_retries
        self.session = session or requests.Session()
        self.session.auth = (consumer_key, consumer_secret)
        self._sleep = sleep

    @classmethod
    def from_config(cls, session: requests.Session | None = None) -> "WooCommerceClient":
        config = get_config()
        if not config.woocommerce_configured:
            raise ConfigurationError("WooCommerce credentials are not configured.")
        return cls(
            store_url=config.WC_STORE_URL,
            consumer_key=config.WC_CONSUMER_KEY,
            consumer_secret=config.WC_CONSUMER_SECRET,
            timeout=config.WC_TIMEOUT_SECONDS,
            page_size=config.WC_PAGE_SIZE,
            max_retries=config.WC_MAX_RETRIES,
            session=session,
        )

    def fetch_orders(self, tenant_id: int, since: datetime) -> list[OrderSnapshot]:
        """All orders created after ``since``, following pagination to the last page."""
        if since.tzinfo is None:
            since = since.replace(tzinfo=timezone.utc)
        after = since.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S")

        snapshots: list[OrderSnapshot] = []
        skipped = 0
        page = 1
        while True:
            response = self._request(
                "GET",
                "orders",
                params={
                    "after": after,
                    "per_page": self.page_size,
                    "page": page,
                    "orderby": "date",
                    "order": "desc",
                },
            )
            batch = self._json(response)
            if not isinstance(batch, list):
                raise ExternalSyncFailure("Unexpected orders payload from WooCommerce.", response.status_code)
            for payload in batch:
                try:
                    snapshots.append(OrderSnapshot.from_woocommerce(payload))
                except (KeyError, TypeError, ValueError):
                    skipped += 1
                    logger.warning(
                        "woocommerce.order.unparseable",
                        extra={
                            "event": "woocommerce.order.unparseable",
                            "tenant_id": tenant_id,
                            "external_order_id": payload.get("id") if isinstance(payload, dict) else None,
                        },
                    )

            total_pages = self._total_pages(response)
            if not batch or len(batch) < self.page_size or (total_pages is not None and page >= total_pages):
                break
            page += 1

        logger.info(
            "woocommerce.orders.fetched",
            extra={
                "event": "woocommerce.orders.fetched",
                "tenant_id": tenant_id,
                "count": len(snapshots),
                "skipped": skipped,
                "pages": page,
            },
        )
        return snapshots

    def push_status(self, tenant_id: int, external_order_id: int, status: str) -> None:
        self._request("PUT", f"orders/{external_order_id}", json={"status": status})
        logger.info(
            "woocommerce.order.status_pushed",
            extra={
                "event": "woocommerce.order.status_pushed",
                "tenant_id": tenant_id,
                "external_order_id": external_order_id,
                "status": status,
            },
        )

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        url = f"{self.base_url}/{path}"
        last_error: ExternalSyncFailure | None = None
        retryable = True
        for attempt in range(1, self.max_retries + 2):
            try:
                response = self.session.request(method, url, timeout=(10, self.timeout), **kwargs)
            except requests.exceptions.RequestException as exc:
                last_error = ExternalSyncFailure(f"WooCommerce {method} {path} failed: {exc}")
            else:
                if response.status_code < 400:
                    return response
                last_error = ExternalSyncFailure(
                    f"WooCommerce {method} {path} returned HTTP {response.status_code}.",
                    response.status_code,
                )
                retryable = response.status_code >= 500

            logger.warning(
                "woocommerce.request.failed",
                extra={
                    "event": "woocommerce.request.failed",
                    "method": method,
                    "path": path,
                    "attempt": attempt,
                    "status_code": last_error.status_code,
                    "error": str(last_error),
                },
            )
            if not retryable:
                break
            if attempt <= self.max_retries:
                self._sleep(min(2 * attempt, 5))
        raise last_error

    @staticmethod
    def _json(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise ExternalSyncFailure("WooCommerce returned a non-JSON body.", response.status_code) from exc

    @staticmethod
    def _total_pages(response: requests.Response) -> int | None:
        value = response.headers.get("X-WP-TotalPages")
        try:
            return int(value) if value is not None else None
        except ValueError:
            return None
