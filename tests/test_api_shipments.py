"""Tests API expeditions, livraison et paiement / Shipment, delivery and payment API tests."""

import httpx
import pytest

from conftest import auth_headers, create_user
from routezy.main import app
from routezy.models.fleet_vehicle import FleetVehicle, VehicleType
from routezy.services.change_feed import ChangeEvent, hub
from routezy.services.payment_gateway import RazorpayClient, get_payment_client, sign

BOOKING = {
    "pickup_address": "12 MG Road, Bengaluru",
    "pickup_city": "Bengaluru",
    "delivery_address": "4 Residency Road, Bengaluru",
    "delivery_city": "Bengaluru",
    "package_type": "PARCEL",
    "vehicle_type": "MINI_TRUCK",
    "distance_km": 20,
}


async def book(client, sender, **overrides) -> dict:
    response = await client.post("/api/shipments/", json={**BOOKING, **overrides}, headers=auth_headers(sender))
    assert response.status_code == 201, response.text
    return response.json()


async def book_and_assign(client, sender, manager, driver) -> dict:
    shipment = await book(client, sender)
    response = await client.put(
        f"/api/shipments/{shipment['id']}/assign",
        json={"driver_id": driver.id},
        headers=auth_headers(manager),
    )
    assert response.status_code == 200, response.text
    return shipment


# ─── Reservation / Booking ───

async def test_booking_uses_pricing(client, sender):
    shipment = await book(client, sender)
    assert shipment["status"] == "PENDING"
    assert shipment["tracking_id"].startswith("RTZ-")
    # 100 + 20 km x 8
    assert shipment["estimated_cost"] == 260.0
    assert len(shipment["pickup_otp"]) == 4
    assert len(shipment["delivery_otp"]) == 4
    assert shipment["sender_id"] == sender.id


async def test_booking_distance_from_coordinates(client, sender):
    shipment = await book(
        client, sender, distance_km=None,
        pickup_lat=12.9716, pickup_lng=77.5946, delivery_lat=12.9716, delivery_lng=77.5946,
    )
    assert shipment["distance_km"] == 0
    assert shipment["estimated_cost"] == 100.0


async def test_driver_cannot_book(client, driver):
    response = await client.post("/api/shipments/", json=BOOKING, headers=auth_headers(driver))
    assert response.status_code == 403


async def test_visibility(client, session_factory, sender, manager, driver):
    other = await create_user(session_factory, "other@routezy.app")
    shipment = await book(client, sender)

    assert len((await client.get("/api/shipments/", headers=auth_headers(manager))).json()) == 1
    assert (await client.get("/api/shipments/", headers=auth_headers(other))).json() == []
    assert (await client.get(f"/api/shipments/{shipment['id']}", headers=auth_headers(other))).status_code == 404
    assert (await client.get(f"/api/shipments/{shipment['id']}", headers=auth_headers(driver))).status_code == 404


# ─── Cycle de vie complet / Full lifecycle ───

async def test_full_delivery_flow(client, sender, manager, driver, truck):
    shipment = await book_and_assign(client, sender, manager, driver)
    shipment_id = shipment["id"]

    # Vu par le chauffeur, sans OTP / Seen by the driver, without OTPs
    seen = (await client.get(f"/api/shipments/{shipment_id}", headers=auth_headers(driver))).json()
    assert seen["status"] == "PICKUP_READY"
    assert seen["vehicle_id"] == truck.id
    assert seen["pickup_otp"] is None
    assert seen["delivery_otp"] is None

    pending = (await client.get("/api/driver/notifications", headers=auth_headers(driver))).json()
    assert [s["id"] for s in pending] == [shipment_id]

    wrong = await client.post(f"/api/shipments/{shipment_id}/pickup", json={"otp": "0000"},
                              headers=auth_headers(driver))
    assert wrong.status_code == 400
    assert wrong.json()["detail"] == "Invalid OTP"

    picked = await client.post(f"/api/shipments/{shipment_id}/pickup", json={"otp": shipment["pickup_otp"]},
                               headers=auth_headers(driver))
    assert picked.status_code == 200
    assert picked.json()["status"] == "IN_TRANSIT"
    assert picked.json()["picked_up_at"] is not None

    moved = await client.put(f"/api/shipments/{shipment_id}/location", json={"lat": 12.97, "lng": 77.6},
                             headers=auth_headers(driver))
    assert moved.json()["driver_lat"] == 12.97

    delivered = await client.post(
        f"/api/shipments/{shipment_id}/deliver",
        json={"otp": shipment["delivery_otp"], "distance_km": 50},
        headers=auth_headers(driver),
    )
    assert delivered.status_code == 200, delivered.text
    body = delivered.json()
    assert body["carbon_saved"] == 7.5
    assert body["shipment"]["status"] == "DELIVERED"
    assert body["shipment"]["final_cost"] == 260.0
    assert body["invoice"]["amount"] == 260.0
    assert body["invoice"]["tax_amount"] == 46.8
    assert body["invoice"]["total_amount"] == 306.8
    assert body["invoice"]["invoice_number"].startswith("INV-")

    # Eco-score du chauffeur / Driver eco score
    score = (await client.get(f"/api/emissions/drivers/{driver.id}", headers=auth_headers(driver))).json()
    assert score["total_deliveries"] == 1
    assert score["total_fuel_liters"] == 7.5
    assert score["total_co2_emitted_kg"] == 20.1
    assert score["eco_rank"] == "Developing"

    # Cumuls du vehicule / Vehicle totals
    vehicle = (await client.get(f"/api/fleet/vehicles/{truck.id}", headers=auth_headers(manager))).json()
    assert vehicle["total_km_driven"] == 50
    assert vehicle["avg_co2_per_km"] == 0.402

    # Entree carburant automatique / Automatic fuel entry
    entries = (await client.get("/api/fleet/fuel-entries", headers=auth_headers(manager))).json()
    assert len(entries) == 1
    assert entries[0]["co2_emitted_kg"] == 20.1
    assert entries[0]["shipment_id"] == shipment_id

    again = await client.post(
        f"/api/shipments/{shipment_id}/deliver",
        json={"otp": shipment["delivery_otp"]},
        headers=auth_headers(driver),
    )
    assert again.status_code == 409

    invoice = (await client.get(f"/api/shipments/{shipment_id}/invoice", headers=auth_headers(sender))).json()
    assert invoice["total_amount"] == 306.8

    metrics = (await client.get("/api/shipments/metrics", headers=auth_headers(sender))).json()
    assert metrics == {
        "total_shipments": 1,
        "delivered_shipments": 1,
        "active_deliveries": 0,
        "total_distance_km": 50.0,
        "total_carbon_saved": 7.5,
        "trees_equivalent": 0,
    }

    session = (await client.get("/api/driver/session", headers=auth_headers(driver))).json()
    assert session["total_deliveries"] == 1
    assert session["total_carbon_saved"] == 7.5
    assert session["current_shipment"] is None


async def test_delivery_folds_the_fuel_entry_into_the_eco_score(client, session_factory, sender, manager, driver):
    async with session_factory() as session:
        bike = FleetVehicle(vehicle_number="KA05XY0001", vehicle_type=VehicleType.BIKE,
                            fuel_type="PETROL", current_driver_id=driver.id)
        session.add(bike)
        await session.commit()

    shipment = await book_and_assign(client, sender, manager, driver)
    await client.post(f"/api/shipments/{shipment['id']}/pickup", json={"otp": shipment["pickup_otp"]},
                      headers=auth_headers(driver))
    delivered = await client.post(
        f"/api/shipments/{shipment['id']}/deliver",
        json={"otp": shipment["delivery_otp"], "distance_km": 50},
        headers=auth_headers(driver),
    )
    assert delivered.status_code == 200, delivered.text

    entry = (await client.get("/api/fleet/fuel-entries", headers=auth_headers(manager))).json()[0]
    score = (await client.get(f"/api/emissions/drivers/{driver.id}", headers=auth_headers(driver))).json()
    # Moto : 50 km x 3 L/100km / Bike: 50 km at 3 L/100km
    assert entry["fuel_liters"] == 1.5
    assert score["total_fuel_liters"] == entry["fuel_liters"]
    assert score["total_co2_emitted_kg"] == entry["co2_emitted_kg"]
    assert score["total_co2_emitted_kg"] == pytest.approx(3.46, abs=0.01)
    assert "Low Emission Hero" in score["badges"]


async def test_changes_reach_subscribers_once_committed(client, sender):
    subscription = hub.subscribe("shipments")
    try:
        shipment = await book(client, sender)
        change = subscription.queue.get_nowait()
    finally:
        subscription.close()
    assert change.event == ChangeEvent.INSERT
    assert change.row_id == shipment["id"]
    assert change.new["status"] == "PENDING"


async def test_only_assigned_driver_confirms_pickup(client, session_factory, sender, manager, driver, truck):
    shipment = await book_and_assign(client, sender, manager, driver)
    response = await client.post(f"/api/shipments/{shipment['id']}/pickup", json={"otp": shipment["pickup_otp"]},
                                 headers=auth_headers(sender))
    assert response.status_code == 403


async def test_assign_requires_driver_role(client, sender, manager):
    shipment = await book(client, sender)
    response = await client.put(f"/api/shipments/{shipment['id']}/assign", json={"driver_id": sender.id},
                                headers=auth_headers(manager))
    assert response.status_code == 404


async def test_cancel_before_pickup(client, sender, manager, driver, truck):
    shipment = await book_and_assign(client, sender, manager, driver)

    forbidden = await client.post(f"/api/shipments/{shipment['id']}/cancel", headers=auth_headers(driver))
    assert forbidden.status_code == 403

    cancelled = await client.post(f"/api/shipments/{shipment['id']}/cancel", headers=auth_headers(sender))
    assert cancelled.json()["status"] == "CANCELLED"

    pickup = await client.post(f"/api/shipments/{shipment['id']}/pickup", json={"otp": shipment["pickup_otp"]},
                               headers=auth_headers(driver))
    assert pickup.status_code == 409


async def test_otp_format_validated(client, sender, manager, driver, truck):
    shipment = await book_and_assign(client, sender, manager, driver)
    response = await client.post(f"/api/shipments/{shipment['id']}/pickup", json={"otp": "12ab"},
                                 headers=auth_headers(driver))
    assert response.status_code == 422


# ─── Paiement / Payment ───

@pytest.fixture
def razorpay():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/orders"):
            return httpx.Response(200, json={"id": "order_42", "amount": 30680, "currency": "INR"})
        return httpx.Response(200, json={"id": "pay_42", "amount": 30680, "method": "upi", "status": "captured"})

    client = RazorpayClient("rzp_test_key", "rzp_secret", transport=httpx.MockTransport(handler))
    app.dependency_overrides[get_payment_client] = lambda: client
    return client


async def test_payment_marks_invoice_paid(client, razorpay, sender, manager, driver, truck):
    shipment = await book_and_assign(client, sender, manager, driver)
    await client.post(f"/api/shipments/{shipment['id']}/pickup", json={"otp": shipment["pickup_otp"]},
                      headers=auth_headers(driver))
    await client.post(f"/api/shipments/{shipment['id']}/deliver",
                      json={"otp": shipment["delivery_otp"], "distance_km": 50}, headers=auth_headers(driver))

    order = await client.post("/api/payments/orders", json={"shipment_id": shipment["id"]},
                              headers=auth_headers(sender))
    assert order.status_code == 200
    assert order.json() == {"order_id": "order_42", "amount": 30680, "currency": "INR", "key_id": "rzp_test_key"}

    bad = await client.post("/api/payments/verify", json={
        "razorpay_order_id": "order_42",
        "razorpay_payment_id": "pay_42",
        "razorpay_signature": "forged",
        "shipment_id": shipment["id"],
    }, headers=auth_headers(sender))
    assert bad.status_code == 400

    verified = await client.post("/api/payments/verify", json={
        "razorpay_order_id": "order_42",
        "razorpay_payment_id": "pay_42",
        "razorpay_signature": sign("order_42", "pay_42", "rzp_secret"),
        "shipment_id": shipment["id"],
    }, headers=auth_headers(sender))
    assert verified.status_code == 200
    assert verified.json()["amount"] == 306.8
    assert verified.json()["method"] == "upi"

    invoices = (await client.get("/api/payments/invoices", headers=auth_headers(manager))).json()
    assert invoices[0]["is_paid"] is True
    assert invoices[0]["payment_reference"] == "pay_42"

    paid_again = await client.post("/api/payments/orders", json={"shipment_id": shipment["id"]},
                                   headers=auth_headers(sender))
    assert paid_again.status_code == 409


async def test_unconfigured_payment_gateway(client, sender):
    app.dependency_overrides[get_payment_client] = lambda: RazorpayClient("", "")
    shipment = await book(client, sender)
    response = await client.post("/api/payments/orders", json={"shipment_id": shipment["id"]},
                                 headers=auth_headers(sender))
    assert response.status_code == 503
