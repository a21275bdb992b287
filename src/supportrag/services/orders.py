"""Order status lookups against the Magento REST API."""

from __future__ import annotations

from typing import Any, Mapping, Protocol

import httpx

from supportrag.metrics.observability import get_logger
from supportrag.models import OrderRecord

_FILTER = "searchCriteria[filterGroups][0][filters][0]"


class OrderLookupError(RuntimeError):
    """Raised when the commerce system cannot be queried."""


class OrderStatusProvider(Protocol):
    """Protocol for order status lookups."""

    def lookup(self, order_id: str) -> OrderRecord:
        """Return the order record for a normalized increment id."""


class MagentoOrderClient:
    """Looks up orders by increment id using an admin bearer token."""

    def __init__(
        self,
        base_url: str,
        admin_token: str,
        *,
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ) -> None:
        if not base_url.endswith("/"):
            base_url += "/"
        self._url = f"{base_url}rest/V1/orders"
        self._headers = {
            "Authorization": f"Bearer {admin_token}",
            "Content-Type": "application/json",
        }
        self._client = client or httpx.Client(timeout=timeout)
        self._logger = get_logger("orders")

    def lookup(self, order_id: str) -> OrderRecord:
        params = {
            f"{_FILTER}[field]": "increment_id",
            f"{_FILTER}[value]": order_id,
            f"{_FILTER}[conditionType]": "eq",
        }
        try:
            response = self._client.get(self._url, headers=self._headers, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise OrderLookupError(
                f"Order lookup failed with HTTP {exc.response.status_code} for order {order_id}"
            ) from exc
        except httpx.HTTPError as exc:
            raise OrderLookupError(f"Order lookup failed for order {order_id}: {exc}") from exc

        items = response.json().get("items") or []
        self._logger.info("order.lookup", order_id=order_id, found=bool(items))
        if not items:
            return OrderRecord.not_found()
        return _to_record(items[0])

    def close(self) -> None:
        self._client.close()


def _to_record(order: Mapping[str, Any]) -> OrderRecord:
    return OrderRecord(
        found=True,
        status=order.get("status"),
        total=order.get("grand_total"),
        created_at=order.get("created_at"),
    )
