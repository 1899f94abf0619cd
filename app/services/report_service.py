"""
Service for the `reports` table: creation from the agent's tool call, listing
for the map, and resolution.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import ValidationError

from app.models.report_models import CreateReportArgs, Report

logger = logging.getLogger(__name__)


class ReportService:
    TABLE = "reports"

    def __init__(self, supabase_client):
        self.client = supabase_client

    @property
    def is_available(self) -> bool:
        return self.client is not None

    def create_report(self, args: CreateReportArgs) -> Optional[Report]:
        """
        Inserta un reporte nuevo con status 'active' y la hora actual.
        Retorna el registro guardado o None si falla (no se reintenta).
        """
        if not self.client:
            logger.error("Supabase client not initialized")
            return None

        row = {
            'type': args.type,
            'description': args.description,
            'lat': args.location.lat,
            'lng': args.location.lng,
            'image_url': args.image_url,
            'status': 'active',
            'timestamp': datetime.now(timezone.utc).isoformat(),
        }

        try:
            response = self.client.table(self.TABLE).insert(row).execute()
        except Exception as e:
            logger.error("Error creando reporte: %s", e)
            return None

        if not response.data:
            logger.error("Insert de reporte sin datos de retorno")
            return None

        report = Report.model_validate(response.data[0])
        logger.info("Reporte creado: %s (%s)", report.id, report.type)
        return report

    def list_reports(self, status: Optional[str] = None, limit: int = 100) -> List[Report]:
        """Reportes más recientes primero. Lista vacía si la lectura falla."""
        if not self.client:
            logger.error("Supabase client not initialized")
            return []

        try:
            query = self.client.table(self.TABLE).select('*')
            if status:
                query = query.eq('status', status)
            response = query.order('timestamp', desc=True).limit(limit).execute()
        except Exception as e:
            logger.error("Error obteniendo reportes: %s", e)
            return []

        reports = []
        for row in response.data or []:
            try:
                reports.append(Report.model_validate(row))
            except ValidationError as e:
                logger.warning("Reporte inválido omitido (%s): %s", row.get('id'), e)
        return reports

    def resolve_report(self, report_id: str) -> Optional[Report]:
        """Marca un reporte como 'resolved'. None si no existe o hubo error."""
        if not self.client:
            logger.error("Supabase client not initialized")
            return None

        try:
            response = self.client.table(self.TABLE)\
                .update({'status': 'resolved'})\
                .eq('id', report_id)\
                .execute()
        except Exception as e:
            logger.error("Error resolviendo reporte %s: %s", report_id, e)
            return None

        if not response.data:
            logger.warning("Reporte no encontrado: %s", report_id)
            return None

        logger.info("Reporte resuelto: %s", report_id)
        return Report.model_validate(response.data[0])
