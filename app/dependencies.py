from dotenv import load_dotenv
load_dotenv()

from app.agents.rescue_agent import build_rescue_agent
from app.services.conversation_service import ConversationService
from app.services.llm_client import get_chat_model
from app.services.media_service import MediaService
from app.services.orchestrator_service import RescueOrchestrator
from app.services.report_service import ReportService
from app.services.supabase_client import create_supabase
from app.services.whatsapp_service import WhatsAppService

# Created once at startup, shared by every request
supabase_client = create_supabase()
whatsapp_service = WhatsAppService()
media_service = MediaService(whatsapp_service, supabase_client)
conversation_service = ConversationService(supabase_client)
report_service = ReportService(supabase_client)

rescue_agent = build_rescue_agent(get_chat_model, report_service)

# Orchestrator (webhook pipeline)
orchestrator = RescueOrchestrator(
    whatsapp_service=whatsapp_service,
    media_service=media_service,
    conversation_service=conversation_service,
    rescue_agent=rescue_agent,
)


def get_orchestrator() -> RescueOrchestrator:
    return orchestrator


def get_report_service() -> ReportService:
    return report_service
