"""
Reports Router — read/resolve surface consumed by the map frontend.
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.dependencies import get_report_service
from app.services.report_service import ReportService

router = APIRouter()


@router.get("/reports")
def list_reports(
    status: Optional[Literal["active", "resolved"]] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    reports: ReportService = Depends(get_report_service),
):
    """Reportes para el mapa, más recientes primero."""
    if not reports.is_available:
        raise HTTPException(status_code=503, detail="Database not configured")

    data = [r.to_map_marker() for r in reports.list_reports(status=status, limit=limit)]
    return {"data": data, "total": len(data)}


@router.post("/reports/{report_id}/resolve")
def resolve_report(
    report_id: str,
    reports: ReportService = Depends(get_report_service),
):
    if not reports.is_available:
        raise HTTPException(status_code=503, detail="Database not configured")

    report = reports.resolve_report(report_id)
    if report is None:
        raise HTTPException(status_code=404, detail="Report not found")
    return report.to_map_marker()
