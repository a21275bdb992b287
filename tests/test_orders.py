from __future__ import annotations

import httpx
import pytest

from supportrag.models import OrderRecord
from supportrag.services.orders import MagentoOrderClient, OrderLookupError

FILTER = "searchCriteria[filterGroups][0][filters][0]"


def make_client(handler, base_url: str = "https://shop.example.com/") -> MagentoOrderClient:
    transport = httpx.MockTransport(handler)
    return MagentoOrderClient(base_url, "secret-token", client=httpx.Client(transport=transport))


def test_lookup_sends_increment_id_search_and_maps_first_item() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        items = [
            {"increment_id": "000123456", "status": "shipped", "grand_total": 49.99, "created_at": "2024-01-01"},
            {"increment_id": "000123456", "status": "canceled", "grand_total": 1, "created_at": "2023-01-01"},
        ]
        return httpx.Response(200, json={"items": items, "total_count": 2})

    record = make_client(handler).lookup("000123456")

    assert record == OrderRecord(found=True, status="shipped", total=49.99, created_at="2024-01-01")
    request = seen[0]
    assert request.url.path == "/rest/V1/orders"
    assert request.headers["Authorization"] == "Bearer secret-token"
    assert request.url.params[f"{FILTER}[field]"] == "increment_id"
    assert request.url.params[f"{FILTER}[value]"] == "000123456"
    assert request.url.params[f"{FILTER}[conditionType]"] == "eq"


def test_lookup_without_items_is_not_found() -> None:
    client = make_client(lambda request: httpx.Response(200, json={"items": [], "total_count": 0}))

    assert client.lookup("000000042") == OrderRecord(found=False)


def test_missing_items_key_is_not_found() -> None:
    client = make_client(lambda request: httpx.Response(200, json={"total_count": 0}))

    assert client.lookup("000000042").found is False


def test_base_url_without_trailing_slash() -> None:
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        return httpx.Response(200, json={"items": []})

    make_client(handler, base_url="https://shop.example.com/magento").lookup("1")

    assert paths == ["/magento/rest/V1/orders"]


def test_http_errors_raise_order_lookup_error() -> None:
    client = make_client(lambda request: httpx.Response(401, json={"message": "unauthorized"}))

    with pytest.raises(OrderLookupError, match="HTTP 401"):
        client.lookup("000000007")


def test_transport_errors_raise_order_lookup_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(OrderLookupError, match="connection refused"):
        make_client(handler).lookup("000000007")
