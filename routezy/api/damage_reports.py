"""Routes dommages vehicules (managers) / Vehicle damage routes (managers)."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from routezy.api.deps import require_staff
from routezy.database import get_db
from routezy.models.damage_report import DamageReport
from routezy.models.user import User
from routezy.schemas.driver import DamageReportRead, DamageReportResolve
from routezy.services.change_feed import ChangeEvent, hub, row_to_dict

router = APIRouter()


@router.get("/", response_model=list[DamageReportRead])
async def list_damage_reports(
    is_resolved: bool | None = None,
    vehicle_id: int | None = None,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
):
    """Lister les signalements / List damage reports."""
    query = select(DamageReport).order_by(DamageReport.created_at.desc(), DamageReport.id.desc())
    if is_resolved is not None:
        query = query.where(DamageReport.is_resolved.is_(is_resolved))
    if vehicle_id is not None:
        query = query.where(DamageReport.vehicle_id == vehicle_id)
    result = await db.execute(query)
    return result.scalars().all()


@router.put("/{report_id}/resolve", response_model=DamageReportRead)
async def resolve_damage_report(
    report_id: int,
    data: DamageReportResolve,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_staff),
):
    """Clore avec cout et notes / Resolve with cost and notes."""
    report = await db.get(DamageReport, report_id)
    if report is None:
        raise HTTPException(status_code=404, detail="Damage report not found")
    if report.is_resolved:
        raise HTTPException(status_code=409, detail="Damage report already resolved")

    old = row_to_dict(report)
    report.is_resolved = True
    report.resolved_at = datetime.now(timezone.utc).replace(tzinfo=None)
    report.resolved_by = user.id
    report.repair_cost = data.repair_cost
    report.manager_notes = data.manager_notes
    await db.flush()
    await db.refresh(report)
    hub.publish_on_commit(db, "damage_reports", ChangeEvent.UPDATE, new=report, old=old)
    return report
