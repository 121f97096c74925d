"""
Assistant IA flotte / Fleet AI assistant.

Construit un resume texte des donnees et l'envoie, avec un prompt systeme fixe,
a une passerelle chat completions compatible OpenAI.
Builds a text summary of fleet data and sends it, with a fixed system prompt,
to an OpenAI-compatible chat completions gateway.
"""

import json
import logging
from collections import Counter

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from routezy.config import settings
from routezy.models.fleet_vehicle import FleetVehicle
from routezy.models.fuel_entry import FuelEntry
from routezy.models.shipment import Shipment, ShipmentStatus

logger = logging.getLogger(__name__)

CHAT_SYSTEM_PROMPT = """You are an AI-powered fleet analytics assistant for Routezy, a logistics and delivery \
management platform. You help managers understand their fleet performance, shipment trends, emissions data, \
and provide actionable insights.

{context}
CAPABILITIES:
1. Answer questions about shipments, deliveries, fleet status, fuel consumption, and emissions
2. Generate insights and recommendations based on the data
3. When asked for charts or visualizations, respond with a ```chart JSON block \
{{"type": "pie|bar|line|area", "title": "...", "data": [{{"name": "Label", "value": 123}}], "xKey": "name", "yKey": "value"}}

GUIDELINES:
- Be concise and data-driven
- Use Indian Rupees (INR) for currency
- Provide specific numbers and percentages
- Suggest actionable improvements
- Format responses with markdown for readability"""

FORECAST_SYSTEM_PROMPT = """You are an expert logistics and fleet management analyst for Routezy, a delivery and \
transportation company in India. Analyze the provided fleet data and provide actionable insights for business \
expansion and optimization. Cover demand forecast, expansion opportunities, fleet optimization, timing insights \
and risk factors. Be specific with numbers and percentages, and format the answer in sections with bullet points."""


class AssistantError(Exception):
    """Erreur passerelle IA / AI gateway error."""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


# ─── Contexte / Context ───

def build_chat_context(shipments: list, vehicles: list, fuel_entries: list) -> str:
    """Resume texte pour le prompt systeme / Text summary for the system prompt."""
    statuses = Counter(getattr(s.status, "value", s.status) for s in shipments)
    total = len(shipments)
    delivered = statuses.get(ShipmentStatus.DELIVERED.value, 0)
    revenue = sum((s.final_cost or s.estimated_cost or 0) for s in shipments)
    fuel = sum(e.fuel_liters or 0 for e in fuel_entries)
    co2 = sum(e.co2_emitted_kg or 0 for e in fuel_entries)
    distance = sum(e.trip_distance_km or 0 for e in fuel_entries)
    cities = Counter()
    for s in shipments:
        for city in (s.pickup_city, s.delivery_city):
            if city:
                cities[city] += 1
    vehicle_types = Counter(getattr(v.vehicle_type, "value", v.vehicle_type) for v in vehicles)

    delivered_pct = f"{delivered / total * 100:.1f}" if total else "0"
    efficiency = f"{fuel / distance * 100:.2f}" if distance > 0 else "0"
    return "\n".join([
        "CURRENT FLEET & LOGISTICS DATA:",
        "SHIPMENTS SUMMARY:",
        f"- Total Shipments: {total}",
        f"- Delivered: {delivered} ({delivered_pct}%)",
        f"- In Transit: {statuses.get(ShipmentStatus.IN_TRANSIT.value, 0)}",
        f"- Pending: {statuses.get(ShipmentStatus.PENDING.value, 0)}",
        f"- Cancelled: {statuses.get(ShipmentStatus.CANCELLED.value, 0)}",
        f"- Total Revenue: INR {revenue:,.0f}",
        "FLEET STATUS:",
        f"- Total Vehicles: {len(vehicles)}",
        f"- Active Vehicles: {sum(1 for v in vehicles if v.is_active)}",
        f"- Vehicle Types: {json.dumps(dict(vehicle_types))}",
        "FUEL & EMISSIONS:",
        f"- Total Fuel Used: {fuel:.1f} liters",
        f"- Total CO2 Emitted: {co2:.1f} kg",
        f"- Total Distance Covered: {distance:.1f} km",
        f"- Avg Fuel Efficiency: {efficiency} L/100km",
        f"CITY ACTIVITY: {json.dumps(dict(cities))}",
        "",
    ])


def build_demand_metrics(shipments: list, vehicles: list, fuel_entries: list) -> dict:
    """Indicateurs de demande / Demand metrics."""
    total = len(shipments)
    delivered = sum(1 for s in shipments if s.status == ShipmentStatus.DELIVERED)
    cities = Counter()
    for s in shipments:
        for city in (s.pickup_city, s.delivery_city):
            if city:
                cities[city] += 1
    by_vehicle_type = Counter(
        getattr(s.vehicle_type, "value", s.vehicle_type) for s in shipments if s.vehicle_type
    )
    return {
        "total_shipments": total,
        "delivered_shipments": delivered,
        "delivery_rate": round(delivered / total * 100, 1) if total else 0,
        "avg_distance_km": round(sum(s.distance_km or 0 for s in shipments) / (total or 1), 1),
        "active_vehicles": sum(1 for v in vehicles if v.is_active),
        "total_fuel_liters": round(sum(e.fuel_liters or 0 for e in fuel_entries), 1),
        "total_co2_kg": round(sum(e.co2_emitted_kg or 0 for e in fuel_entries), 1),
        "city_demand": dict(cities.most_common(10)),
        "vehicle_type_demand": dict(by_vehicle_type.most_common()),
    }


def format_demand_metrics(metrics: dict) -> str:
    lines = [
        "FLEET ANALYTICS DATA:",
        f"- Total Shipments (last 100): {metrics['total_shipments']}",
        f"- Delivered: {metrics['delivered_shipments']} ({metrics['delivery_rate']}%)",
        f"- Average Distance: {metrics['avg_distance_km']} km",
        f"- Active Vehicles: {metrics['active_vehicles']}",
        f"- Total Fuel Used: {metrics['total_fuel_liters']} liters",
        f"- Total CO2 Emissions: {metrics['total_co2_kg']} kg",
        "DEMAND BY CITY:",
    ]
    lines += [f"- {city}: {count} shipments" for city, count in metrics["city_demand"].items()]
    lines.append("DEMAND BY VEHICLE TYPE:")
    lines += [f"- {vt}: {count} shipments" for vt, count in metrics["vehicle_type_demand"].items()]
    return "\n".join(lines)


async def load_context_rows(db: AsyncSession) -> tuple[list, list, list]:
    """100 dernieres expeditions, vehicules, 50 dernieres entrees / Last 100 shipments, vehicles, last 50 entries."""
    shipments = await db.execute(select(Shipment).order_by(Shipment.id.desc()).limit(100))
    vehicles = await db.execute(select(FleetVehicle))
    entries = await db.execute(
        select(FuelEntry).order_by(FuelEntry.entry_date.desc(), FuelEntry.id.desc()).limit(50)
    )
    return list(shipments.scalars().all()), list(vehicles.scalars().all()), list(entries.scalars().all())


# ─── Passerelle / Gateway ───

class AIGatewayClient:
    """Client chat completions / Chat completions client."""

    def __init__(
        self,
        url: str | None = None,
        api_key: str | None = None,
        model: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url or settings.AI_GATEWAY_URL
        self.api_key = api_key if api_key is not None else settings.AI_API_KEY
        self.model = model or settings.AI_MODEL
        self.transport = transport

    async def complete(self, system_prompt: str, messages: list[dict], max_tokens: int | None = None) -> str:
        """Une seule tentative, pas de retry / A single attempt, no retry."""
        if not self.api_key:
            raise AssistantError("AI gateway is not configured", status_code=503)

        payload = {
            "model": self.model,
            "messages": [{"role": "system", "content": system_prompt}, *messages],
            "stream": False,
        }
        if max_tokens:
            payload["max_tokens"] = max_tokens

        try:
            async with httpx.AsyncClient(timeout=settings.AI_TIMEOUT_SECONDS, transport=self.transport) as client:
                response = await client.post(
                    self.url,
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
        except httpx.HTTPError as exc:
            logger.error("AI gateway request failed: %s", exc)
            raise AssistantError("AI gateway error") from exc

        if response.status_code == 429:
            raise AssistantError("Rate limits exceeded, please try again later.", status_code=429)
        if response.status_code == 402:
            raise AssistantError("Payment required, please add funds to your AI workspace.", status_code=402)
        if response.status_code >= 400:
            logger.error("AI gateway error: %s %s", response.status_code, response.text)
            raise AssistantError("AI gateway error")

        data = response.json()
        try:
            return data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            logger.error("Unexpected AI gateway payload: %s", data)
            raise AssistantError("AI gateway error") from exc


def get_ai_client() -> AIGatewayClient:
    """Dependance FastAPI / FastAPI dependency."""
    return AIGatewayClient()
