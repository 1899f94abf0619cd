"""
Tool `create_report`: contrato de function-calling que el LLM usa para crear
un reporte de rescate, y su ejecución contra ReportService.
"""
import json
import logging
from typing import Iterable, Optional, Tuple

from langchain_core.utils.function_calling import convert_to_openai_tool
from pydantic import ValidationError

from app.models.report_models import CreateReportArgs, Report

logger = logging.getLogger(__name__)

CREATE_REPORT_TOOL_NAME = "create_report"


def report_tool_schema() -> dict:
    """OpenAI-format tool declaration, accepted by every chat model's bind_tools()."""
    schema = convert_to_openai_tool(CreateReportArgs)
    schema["function"]["name"] = CREATE_REPORT_TOOL_NAME
    return schema


def execute_create_report(
    raw_args,
    report_service,
    allowed_image_urls: Iterable[str],
) -> Tuple[str, Optional[Report]]:
    """
    Valida los argumentos del tool-call y guarda el reporte.

    Args:
        raw_args: dict (ya parseado por LangChain) o string JSON
        report_service: ReportService
        allowed_image_urls: URLs subidas al bucket en esta conversación

    Returns:
        (resultado JSON para el LLM, Report guardado o None)
    """
    try:
        if isinstance(raw_args, str):
            raw_args = json.loads(raw_args)
        args = CreateReportArgs.model_validate(raw_args)
    except (json.JSONDecodeError, ValidationError) as e:
        logger.warning("Argumentos inválidos para create_report: %s", e)
        return _result(False, error="invalid_arguments", detail=str(e)), None

    allowed = {url.rstrip("/") for url in allowed_image_urls}
    if args.image_url.rstrip("/") not in allowed:
        logger.warning("create_report con imagen no subida por el usuario: %s", args.image_url)
        return _result(False, error="missing_image",
                       detail="El usuario debe enviar una foto del animal antes de crear el reporte."), None

    report = report_service.create_report(args)
    if report is None:
        return _result(False, error="database_error",
                       detail="No se pudo guardar el reporte."), None

    return _result(True, report_id=report.id, type=report.type, status=report.status), report


def _result(success: bool, **fields) -> str:
    return json.dumps({"success": success, **fields}, ensure_ascii=False)
