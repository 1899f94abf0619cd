from langchain_core.messages import AIMessage, HumanMessage, ToolMessage

from app.agents.rescue_agent import (
    GENERIC_ERROR_MESSAGE,
    REPORT_CREATED_MESSAGE,
    REPORT_FAILED_MESSAGE,
    build_rescue_agent,
    history_to_messages,
)
from conftest import FakeChatModel

IMAGE_URL = "https://fake.supabase.co/storage/v1/object/public/report-images/whatsapp/cat.jpg"


def _tool_call(args=None):
    args = args or {
        "type": "cat",
        "description": "Gato gris con la pata lastimada",
        "location": {"lat": 3.454123, "lng": -76.533876},
        "image_url": IMAGE_URL,
    }
    return AIMessage(content="", tool_calls=[{"name": "create_report", "args": args, "id": "call_1"}])


def _run(model, report_service, image_urls=(IMAGE_URL,)):
    agent = build_rescue_agent(lambda: model, report_service)
    return agent.invoke({
        "messages": [HumanMessage(content="Hay un gato herido")],
        "sender_name": "Ana",
        "image_urls": list(image_urls),
        "report": None,
    })


def test_plain_reply_without_tool(report_service, fake_db):
    model = FakeChatModel([AIMessage(content="¿Me puedes enviar una foto del gato?")])
    result = _run(model, report_service)

    assert result["reply"] == "¿Me puedes enviar una foto del gato?"
    assert result.get("report") is None
    assert len(model.calls) == 1
    assert model.bound_tools[0]["function"]["name"] == "create_report"
    assert fake_db.writes == 0


def test_tool_call_creates_report_and_asks_for_confirmation(report_service, fake_db):
    model = FakeChatModel([_tool_call(), AIMessage(content="¡Listo! Tu reporte está en el mapa.")])
    result = _run(model, report_service)

    assert result["reply"] == "¡Listo! Tu reporte está en el mapa."
    assert result["report"].status == "active"
    assert len(fake_db.tables["reports"]) == 1

    # second completion sees the tool result
    assert len(model.calls) == 2
    tool_messages = [m for m in model.calls[1] if isinstance(m, ToolMessage)]
    assert len(tool_messages) == 1
    assert '"success": true' in tool_messages[0].content


def test_duplicate_tool_calls_create_one_report(report_service, fake_db):
    first = _tool_call()
    call = first.tool_calls[0]
    double = AIMessage(content="", tool_calls=[call, {**call, "id": "call_2"}])
    model = FakeChatModel([double, AIMessage(content="Listo")])
    _run(model, report_service)

    assert len(fake_db.tables["reports"]) == 1


def test_confirmation_failure_uses_fixed_text(report_service):
    model = FakeChatModel([_tool_call(), RuntimeError("timeout")])
    result = _run(model, report_service)
    assert result["reply"] == REPORT_CREATED_MESSAGE


def test_failed_report_with_confirmation_failure_apologises(report_service, fake_db):
    fake_db.fail = True
    model = FakeChatModel([_tool_call(), RuntimeError("timeout")])
    result = _run(model, report_service)
    assert result["reply"] == REPORT_FAILED_MESSAGE
    assert result.get("report") is None


def test_invented_image_url_does_not_create_report(report_service, fake_db):
    model = FakeChatModel([_tool_call(), AIMessage(content="Envíame una foto, por favor.")])
    result = _run(model, report_service, image_urls=[])

    assert result.get("report") is None
    assert fake_db.writes == 0
    tool_message = [m for m in model.calls[1] if isinstance(m, ToolMessage)][0]
    assert "missing_image" in tool_message.content


def test_llm_failure_returns_generic_error(report_service):
    model = FakeChatModel([RuntimeError("provider down")])
    assert _run(model, report_service)["reply"] == GENERIC_ERROR_MESSAGE


def test_empty_llm_reply_returns_generic_error(report_service):
    model = FakeChatModel([AIMessage(content="")])
    assert _run(model, report_service)["reply"] == GENERIC_ERROR_MESSAGE


def test_list_content_is_flattened(report_service):
    model = FakeChatModel([AIMessage(content=[{"type": "text", "text": "Hola "}, {"type": "text", "text": "Ana"}])])
    assert _run(model, report_service)["reply"] == "Hola Ana"


def test_history_to_messages_alternates_roles():
    messages = history_to_messages([
        {"role": "user", "content": "hola"},
        {"role": "assistant", "content": "¿en qué te ayudo?"},
    ])
    assert isinstance(messages[0], HumanMessage)
    assert isinstance(messages[1], AIMessage)
    assert messages[1].content == "¿en qué te ayudo?"
