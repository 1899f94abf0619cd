import logging
from typing import TypedDict, Annotated, Literal, List, Dict

from langchain_core.messages import HumanMessage, SystemMessage, AIMessage, ToolMessage
from langgraph.graph import StateGraph, END, START
from langgraph.graph.message import add_messages

from app.models.report_models import Report
from app.tools.report_tools import (
    CREATE_REPORT_TOOL_NAME,
    execute_create_report,
    report_tool_schema,
)

logger = logging.getLogger(__name__)


GENERIC_ERROR_MESSAGE = "Lo siento, no pude procesar tu mensaje. Por favor intenta de nuevo en unos minutos. 🐾"

REPORT_CREATED_MESSAGE = "¡Gracias! Tu reporte quedó registrado en el mapa y nuestros voluntarios lo revisarán pronto. 🐾"

REPORT_FAILED_MESSAGE = "Lo siento, no pude registrar tu reporte en este momento. ¿Puedes intentarlo de nuevo en unos minutos?"


# --- STATE DEFINITION ---

class RescueState(TypedDict):
    messages: Annotated[list, add_messages]
    sender_name: str
    image_urls: List[str]
    report: Report | None
    reply: str


# --- SYSTEM PROMPT ---

def get_system_prompt(user_name: str) -> str:
    return f"""Eres el asistente de WhatsApp de una organización de rescate de animales callejeros en Cali, Colombia.
Ayudas a los ciudadanos a reportar animales en peligro y respondes dudas sobre rescate, adopción y cuidados básicos.
Mantén el contexto de los mensajes anteriores para dar respuestas más relevantes y personalizadas.

## CONTEXTO
- Usuario: {user_name or "Usuario"}

## CÓMO SE CREA UN REPORTE
Para crear un reporte necesitas TRES datos del usuario:
1. Una FOTO del animal (llega como [Imagen recibida: URL]).
2. La UBICACIÓN (llega como [Ubicación compartida: lat=..., lng=...]).
3. Una DESCRIPCIÓN del animal y su estado.

## REGLAS
- Pide SOLO el dato que falte, uno a la vez.
- Cuando tengas los tres datos, llama al tool `{CREATE_REPORT_TOOL_NAME}`.
- `image_url` debe ser EXACTAMENTE la URL de [Imagen recibida: ...]. NUNCA inventes URLs.
- `location` debe usar las coordenadas de [Ubicación compartida: ...]. NUNCA inventes coordenadas.
- `type`: 'dog' para perros, 'cat' para gatos, 'other' para cualquier otro animal.
- Si el animal está en peligro inmediato, recomienda también llamar a la línea de emergencias 123.
- Responde en español, de forma breve y amable.
"""


def get_confirmation_prompt(user_name: str) -> str:
    return f"""Eres el asistente de WhatsApp de una organización de rescate animal en Cali, Colombia.
Acabas de intentar registrar un reporte para {user_name or "el usuario"}. El resultado del tool está en el último mensaje.
- Si `success` es true: agradece, confirma que el reporte quedó en el mapa y que los voluntarios lo revisarán.
- Si `error` es "missing_image": pide amablemente una foto del animal.
- Si hubo otro error: discúlpate y pide que lo intente de nuevo más tarde.
Responde en español, en 1-2 oraciones."""


# --- HELPERS ---

def history_to_messages(history: List[Dict]) -> list:
    """Convierte el historial {role, content} a mensajes de LangChain."""
    messages = []
    for entry in history:
        if entry.get("role") == "assistant":
            messages.append(AIMessage(content=entry.get("content", "")))
        else:
            messages.append(HumanMessage(content=entry.get("content", "")))
    return messages


def message_text(message) -> str:
    """Texto plano de un mensaje; algunos proveedores devuelven una lista de partes."""
    content = message.content
    if isinstance(content, list):
        parts = [p.get("text", "") if isinstance(p, dict) else str(p) for p in content]
        return "".join(parts).strip()
    return str(content or "").strip()


def build_rescue_agent(chat_model_factory, report_service):
    """
    Compila el grafo de dos etapas:
    agent (intención + tool-call) -> create_report -> confirm -> format.
    """

    def agent_node(state: RescueState):
        """Intent stage: LLM con el tool create_report disponible."""
        system_prompt = get_system_prompt(state.get("sender_name", ""))
        try:
            model = chat_model_factory().bind_tools([report_tool_schema()])
            response = model.invoke([SystemMessage(content=system_prompt)] + state["messages"])
        except Exception as e:
            logger.error("Error en agent_node: %s", e)
            response = AIMessage(content=GENERIC_ERROR_MESSAGE)
        return {"messages": [response]}

    def create_report_node(state: RescueState):
        """Ejecuta el primer create_report; cualquier otro tool-call se descarta."""
        last_message = state["messages"][-1]
        tool_messages = []
        report = None
        executed = False

        for call in last_message.tool_calls:
            if call["name"] != CREATE_REPORT_TOOL_NAME or executed:
                logger.warning("Tool-call ignorado: %s", call["name"])
                content = '{"success": false, "error": "ignored"}'
            else:
                logger.info("TOOL create_report invocado: %s", call["args"])
                content, report = execute_create_report(
                    call["args"], report_service, state.get("image_urls", [])
                )
                executed = True
            tool_messages.append(ToolMessage(content=content, tool_call_id=call["id"]))

        return {"messages": tool_messages, "report": report}

    def confirm_node(state: RescueState):
        """Confirmation stage: segunda llamada al LLM (sin tools) con el resultado del tool."""
        system_prompt = get_confirmation_prompt(state.get("sender_name", ""))
        try:
            response = chat_model_factory().invoke(
                [SystemMessage(content=system_prompt)] + state["messages"]
            )
            if message_text(response):
                return {"messages": [response]}
        except Exception as e:
            logger.error("Error en confirm_node: %s", e)

        fallback = REPORT_CREATED_MESSAGE if state.get("report") else REPORT_FAILED_MESSAGE
        return {"messages": [AIMessage(content=fallback)]}

    def format_node(state: RescueState):
        """Format Node (DETERMINISTIC — NO LLM CALL)."""
        last_message = state["messages"][-1]
        reply = ""
        if isinstance(last_message, AIMessage) and not last_message.tool_calls:
            reply = message_text(last_message)
        if not reply:
            reply = GENERIC_ERROR_MESSAGE
        logger.info("Format Node: report=%s, len=%s", bool(state.get("report")), len(reply))
        return {"reply": reply}

    def should_continue(state: RescueState) -> Literal["create_report", "format"]:
        last_message = state["messages"][-1]
        if getattr(last_message, "tool_calls", None):
            return "create_report"
        return "format"

    workflow = StateGraph(RescueState)

    workflow.add_node("agent", agent_node)
    workflow.add_node("create_report", create_report_node)
    workflow.add_node("confirm", confirm_node)
    workflow.add_node("format", format_node)

    workflow.add_edge(START, "agent")
    workflow.add_conditional_edges(
        "agent",
        should_continue,
        {
            "create_report": "create_report",
            "format": "format",
        }
    )
    workflow.add_edge("create_report", "confirm")
    workflow.add_edge("confirm", "format")
    workflow.add_edge("format", END)

    return workflow.compile()
