"""
Shared test doubles: an in-memory Supabase client, a scripted chat model and a
recording WhatsApp service.
"""
import json
import uuid
from datetime import datetime, timezone

import pytest

from app.agents.rescue_agent import build_rescue_agent
from app.exceptions import WhatsAppSendError
from app.services.conversation_service import ConversationService
from app.services.media_service import MediaService
from app.services.orchestrator_service import RescueOrchestrator
from app.services.report_service import ReportService
from app.services.signature_service import compute_signature

WEBHOOK_SECRET = "test-webhook-secret"
SENDER_ID = "573001234567"


# ── Supabase double ──

class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.op = "select"
        self.columns = "*"
        self.payload = None
        self.filters = []
        self.order_by = None
        self.max_rows = None

    def select(self, columns="*"):
        self.op, self.columns = "select", columns
        return self

    def insert(self, row):
        self.op, self.payload = "insert", row
        return self

    def update(self, values):
        self.op, self.payload = "update", values
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, n):
        self.max_rows = n
        return self

    def execute(self):
        if self.db.fail:
            raise RuntimeError("database unavailable")

        rows = self.db.tables.setdefault(self.table, [])

        if self.op == "insert":
            row = dict(self.payload)
            row.setdefault("id", str(uuid.uuid4()))
            row.setdefault("created_at", datetime.now(timezone.utc).isoformat())
            rows.append(row)
            self.db.writes += 1
            return FakeResponse([dict(row)])

        matched = [r for r in rows if all(r.get(c) == v for c, v in self.filters)]

        if self.op == "update":
            for r in matched:
                r.update(self.payload)
                self.db.writes += 1
            return FakeResponse([dict(r) for r in matched])

        if self.order_by:
            column, desc = self.order_by
            matched = sorted(matched, key=lambda r: r.get(column), reverse=desc)
        if self.max_rows is not None:
            matched = matched[:self.max_rows]
        if self.columns != "*":
            keys = [c.strip() for c in self.columns.split(",")]
            matched = [{k: r.get(k) for k in keys} for r in matched]
        return FakeResponse([dict(r) for r in matched])


class FakeBucket:
    def __init__(self, storage, name):
        self.storage = storage
        self.name = name

    def upload(self, path, content, file_options=None):
        if self.storage.fail:
            raise RuntimeError("storage unavailable")
        self.storage.files[f"{self.name}/{path}"] = (content, file_options)
        return {"Key": f"{self.name}/{path}"}

    def get_public_url(self, path):
        return f"https://fake.supabase.co/storage/v1/object/public/{self.name}/{path}"


class FakeStorage:
    def __init__(self):
        self.files = {}
        self.fail = False

    def from_(self, bucket):
        return FakeBucket(self, bucket)


class FakeSupabase:
    def __init__(self):
        self.tables = {}
        self.writes = 0
        self.fail = False
        self.storage = FakeStorage()

    def table(self, name):
        return FakeQuery(self, name)


# ── Chat model double ──

class FakeChatModel:
    """Returns scripted responses in order; an Exception in the script is raised."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []
        self.bound_tools = None

    def bind_tools(self, tools):
        self.bound_tools = tools
        return self

    def invoke(self, messages):
        self.calls.append(messages)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


# ── WhatsApp double ──

class FakeWhatsApp:
    access_token = "wa-token"
    timeout = 5.0

    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    def graph_url(self, path):
        return f"https://graph.facebook.com/v17.0/{path}"

    def send_message(self, to, message):
        if self.fail:
            raise WhatsAppSendError("WhatsApp API returned 500")
        self.sent.append((to, message))
        return {"messages": [{"id": "wamid.out"}]}


STORAGE_URL = "https://fake.supabase.co/storage/v1/object/public/report-images"


class FakeMedia:
    """Records uploads; ownership checks go through a real MediaService over the storage double."""

    def __init__(self, url=f"{STORAGE_URL}/whatsapp/{SENDER_ID}/dog.jpg"):
        self.url = url
        self.calls = []
        self._service = MediaService(FakeWhatsApp(), FakeSupabase(), bucket="report-images")

    def store_media(self, media_id, mime_type, sender_id):
        self.calls.append((media_id, mime_type, sender_id))
        return self.url

    def is_stored_image(self, url, sender_id):
        return self._service.is_stored_image(url, sender_id)


# ── Payload helpers ──

def make_envelope(message: dict, name: str = "Ana", sender_id: str = SENDER_ID) -> dict:
    message = {"from": sender_id, "id": "wamid.in", "timestamp": "1717430400", **message}
    return {
        "object": "whatsapp_business_account",
        "entry": [{
            "id": "WABA_ID",
            "changes": [{
                "field": "messages",
                "value": {
                    "messaging_product": "whatsapp",
                    "metadata": {"display_phone_number": "15550001111", "phone_number_id": "PHONE_ID"},
                    "contacts": [{"profile": {"name": name}, "wa_id": sender_id}],
                    "messages": [message],
                },
            }],
        }],
    }


def sign(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    return "sha256=" + compute_signature(secret, body)


def encode(payload: dict) -> bytes:
    return json.dumps(payload).encode("utf-8")


# ── Fixtures ──

@pytest.fixture
def fake_db():
    return FakeSupabase()


@pytest.fixture
def fake_whatsapp():
    return FakeWhatsApp()


@pytest.fixture
def fake_media():
    return FakeMedia()


@pytest.fixture
def report_service(fake_db):
    return ReportService(fake_db)


@pytest.fixture
def conversation_service(fake_db):
    return ConversationService(fake_db)


@pytest.fixture
def make_orchestrator(fake_whatsapp, fake_media, conversation_service, report_service):
    """Builds an orchestrator whose LLM answers with the given scripted responses."""
    def _build(responses):
        model = FakeChatModel(responses)
        agent = build_rescue_agent(lambda: model, report_service)
        orchestrator = RescueOrchestrator(
            whatsapp_service=fake_whatsapp,
            media_service=fake_media,
            conversation_service=conversation_service,
            rescue_agent=agent,
        )
        return orchestrator, model
    return _build
