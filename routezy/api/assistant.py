"""
Routes assistant IA / AI assistant routes.
Chat analytique et prevision de demande.
Analytics chat and demand forecast.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from routezy.api.deps import require_staff
from routezy.database import get_db
from routezy.models.user import User
from routezy.schemas.assistant import ChatRequest, ChatResponse, ForecastResponse
from routezy.services.assistant import (
    CHAT_SYSTEM_PROMPT,
    FORECAST_SYSTEM_PROMPT,
    AIGatewayClient,
    AssistantError,
    build_chat_context,
    build_demand_metrics,
    format_demand_metrics,
    get_ai_client,
    load_context_rows,
)

router = APIRouter()


@router.post("/chat", response_model=ChatResponse)
async def chat(
    data: ChatRequest,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
    client: AIGatewayClient = Depends(get_ai_client),
):
    """Question sur les donnees de flotte / Question about fleet data."""
    shipments, vehicles, entries = await load_context_rows(db)
    prompt = CHAT_SYSTEM_PROMPT.format(context=build_chat_context(shipments, vehicles, entries))
    try:
        reply = await client.complete(prompt, [m.model_dump() for m in data.messages])
    except AssistantError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message)
    return ChatResponse(reply=reply)


@router.get("/forecast", response_model=ForecastResponse)
async def forecast(
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
    client: AIGatewayClient = Depends(get_ai_client),
):
    """Prevision de demande / Demand forecast."""
    shipments, vehicles, entries = await load_context_rows(db)
    metrics = build_demand_metrics(shipments, vehicles, entries)
    question = (
        f"{format_demand_metrics(metrics)}\n\n"
        "Based on this data, provide a demand forecast and business insights."
    )
    try:
        text = await client.complete(FORECAST_SYSTEM_PROMPT, [{"role": "user", "content": question}], max_tokens=2000)
    except AssistantError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message)
    return ForecastResponse(metrics=metrics, forecast=text)
