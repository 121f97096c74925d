"""Tests clients externes (paiement, geocodage, IA) / External client tests."""

import json
from types import SimpleNamespace

import httpx
import pytest

from routezy.services.assistant import (
    AIGatewayClient,
    AssistantError,
    build_chat_context,
    build_demand_metrics,
    format_demand_metrics,
)
from routezy.services.geocoding import GeocodingClient
from routezy.services.payment_gateway import PaymentError, RazorpayClient, sign, verify_signature


# ─── Paiement / Payment ───

def test_signature_roundtrip():
    signature = sign("order_1", "pay_1", "s3cret")
    assert len(signature) == 64
    assert verify_signature("order_1", "pay_1", signature, "s3cret")
    assert not verify_signature("order_1", "pay_2", signature, "s3cret")
    assert not verify_signature("order_1", "pay_1", None, "s3cret")


async def test_create_order_converts_to_paise():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        seen["auth"] = request.headers["authorization"]
        body = seen["body"]
        return httpx.Response(200, json={"id": "order_9", "amount": body["amount"], "currency": body["currency"]})

    client = RazorpayClient("key", "secret", base_url="https://pay.test/v1", transport=httpx.MockTransport(handler))
    order = await client.create_order(306.8, receipt="shipment_1")
    assert seen["path"] == "/v1/orders"
    assert seen["body"]["amount"] == 30680
    assert seen["body"]["currency"] == "INR"
    assert seen["auth"].startswith("Basic ")
    assert order == {"order_id": "order_9", "amount": 30680, "currency": "INR", "key_id": "key"}


async def test_create_order_gateway_failure():
    transport = httpx.MockTransport(lambda request: httpx.Response(500, json={"error": "boom"}))
    client = RazorpayClient("key", "secret", transport=transport)
    with pytest.raises(PaymentError) as exc:
        await client.create_order(100)
    assert exc.value.status_code == 502


async def test_unconfigured_client():
    client = RazorpayClient("", "")
    with pytest.raises(PaymentError) as exc:
        await client.create_order(100)
    assert exc.value.status_code == 503


def test_verify_mismatch():
    client = RazorpayClient("key", "secret")
    client.verify("order_1", "pay_1", sign("order_1", "pay_1", "secret"))
    with pytest.raises(PaymentError) as exc:
        client.verify("order_1", "pay_1", "deadbeef")
    assert exc.value.status_code == 400


async def test_fetch_payment_failure_returns_none():
    transport = httpx.MockTransport(lambda request: httpx.Response(404))
    client = RazorpayClient("key", "secret", transport=transport)
    assert await client.fetch_payment("pay_1") is None


# ─── Geocodage / Geocoding ───

NOMINATIM_ROW = {
    "display_name": "MG Road, Bengaluru, Karnataka 560001, India",
    "lat": "12.9756",
    "lon": "77.6050",
    "address": {"town": "Bengaluru", "postcode": "560001"},
}


async def test_search_short_query_skips_request():
    def handler(request):
        raise AssertionError("no request expected")

    client = GeocodingClient(transport=httpx.MockTransport(handler))
    assert await client.search("MG") == []


async def test_search_parses_results():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json=[NOMINATIM_ROW, {"display_name": "no coords"}])

    client = GeocodingClient(base_url="https://geo.test", transport=httpx.MockTransport(handler))
    results = await client.search("MG Road", limit=3)
    assert seen["params"]["countrycodes"] == "in"
    assert seen["params"]["limit"] == "3"
    assert results == [{
        "display_name": NOMINATIM_ROW["display_name"],
        "lat": 12.9756,
        "lng": 77.605,
        "city": "Bengaluru",
        "pincode": "560001",
    }]


async def test_search_error_returns_empty():
    client = GeocodingClient(transport=httpx.MockTransport(lambda r: httpx.Response(500)))
    assert await client.search("MG Road") == []


async def test_reverse():
    client = GeocodingClient(transport=httpx.MockTransport(lambda r: httpx.Response(200, json=NOMINATIM_ROW)))
    result = await client.reverse(12.9756, 77.605)
    assert result["city"] == "Bengaluru"
    assert result["lat"] == 12.9756

    empty = GeocodingClient(transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"error": "x"})))
    assert await empty.reverse(0, 0) is None


# ─── Assistant IA / AI assistant ───

def ai_client(response: httpx.Response, api_key="k") -> AIGatewayClient:
    return AIGatewayClient(url="https://ai.test/v1/chat/completions", api_key=api_key,
                           transport=httpx.MockTransport(lambda r: response))


async def test_complete_returns_content():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"content": "All good"}}]})

    client = AIGatewayClient(url="https://ai.test/v1/chat/completions", api_key="k",
                             transport=httpx.MockTransport(handler))
    reply = await client.complete("system", [{"role": "user", "content": "hi"}])
    assert reply == "All good"
    assert seen["body"]["messages"][0] == {"role": "system", "content": "system"}
    assert seen["body"]["messages"][1]["content"] == "hi"
    assert seen["body"]["stream"] is False


@pytest.mark.parametrize("status,expected", [(429, 429), (402, 402), (500, 502)])
async def test_complete_gateway_errors(status, expected):
    with pytest.raises(AssistantError) as exc:
        await ai_client(httpx.Response(status)).complete("s", [])
    assert exc.value.status_code == expected


async def test_complete_without_key():
    with pytest.raises(AssistantError) as exc:
        await ai_client(httpx.Response(200), api_key="").complete("s", [])
    assert exc.value.status_code == 503


async def test_complete_malformed_payload():
    with pytest.raises(AssistantError):
        await ai_client(httpx.Response(200, json={"choices": []})).complete("s", [])


def _shipment(status, city_from, city_to, cost, vehicle_type="TRUCK"):
    return SimpleNamespace(status=status, pickup_city=city_from, delivery_city=city_to,
                           final_cost=None, estimated_cost=cost, distance_km=20.0,
                           vehicle_type=vehicle_type)


def test_chat_context_and_metrics():
    shipments = [
        _shipment("DELIVERED", "Pune", "Mumbai", 300),
        _shipment("PENDING", "Pune", None, 200, vehicle_type=None),
    ]
    vehicles = [SimpleNamespace(vehicle_type="TRUCK", is_active=True),
                SimpleNamespace(vehicle_type="BIKE", is_active=False)]
    entries = [SimpleNamespace(fuel_liters=10, co2_emitted_kg=26.8, trip_distance_km=100)]

    context = build_chat_context(shipments, vehicles, entries)
    assert "- Total Shipments: 2" in context
    assert "- Delivered: 1 (50.0%)" in context
    assert "- Total Revenue: INR 500" in context
    assert "- Active Vehicles: 1" in context
    assert "- Avg Fuel Efficiency: 10.00 L/100km" in context
    assert '"Pune": 2' in context

    metrics = build_demand_metrics(shipments, vehicles, entries)
    assert metrics["delivery_rate"] == 50.0
    assert metrics["city_demand"] == {"Pune": 2, "Mumbai": 1}
    assert metrics["vehicle_type_demand"] == {"TRUCK": 1}
    assert "- Pune: 2 shipments" in format_demand_metrics(metrics)
