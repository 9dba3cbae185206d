"""
HealthFlux Backend — Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the whole suite.
How:   Environment variables are set before any healthflux import so the
       module-level settings and engine never point at a real database or
       real API keys.

Fixtures (all function-scoped):
    ├── store:            SqlEntityStore over a fresh SQLite file (aiosqlite)
    ├── fake_llm:         LLMService double with scripted replies
    ├── fake_email:       EmailSender double that records or fails sends
    ├── translator:       Translator loaded from the bundled catalogs
    ├── temp_storage:     Temporary upload directory
    ├── identity / auth_headers: a logged-in caller and its bearer header
    └── test_client:      httpx AsyncClient bound to a fully wired app
"""

import os
import tempfile

# Before any healthflux import
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///" + os.path.join(
    tempfile.mkdtemp(prefix="healthflux_db_"), "module.db"
)
os.environ["GEMINI_API_KEY"] = "test-key-not-real"
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["RESEND_API_KEY"] = ""
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="healthflux_test_")
os.environ["LOG_LEVEL"] = "WARNING"

from typing import Any, Callable, List, Optional  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402

from healthflux.database import Base  # noqa: E402
from healthflux.exceptions import EmailDeliveryError  # noqa: E402
from healthflux.i18n import Translator  # noqa: E402
from healthflux.models.entity_record import EntityRecord  # noqa: E402,F401
from healthflux.services.auth_service import AuthService, Identity  # noqa: E402
from healthflux.services.email_service import EmailSender  # noqa: E402
from healthflux.services.entity_store import SqlEntityStore  # noqa: E402
from healthflux.services.file_service import FileService  # noqa: E402
from healthflux.services.llm_base import LLMService  # noqa: E402

TEST_JWT_SECRET = "test-jwt-secret"


# ══════════════════════════════════════════════════════════════════════════
# Test doubles
# ══════════════════════════════════════════════════════════════════════════

class FakeLLM(LLMService):
    """
    Scripted LLMService.

    `reply` is returned from complete(); `image_reply` from analyze_image().
    Either may be a callable taking the prompt. Every call is recorded.
    """

    def __init__(self, reply: Any = "", image_reply: Any = None):
        self.reply = reply
        self.image_reply = image_reply if image_reply is not None else {}
        self.prompts: List[str] = []
        self.json_flags: List[bool] = []
        self.image_calls: List[dict] = []
        self.healthy = True

    async def complete(self, prompt: str, json_response: bool = False) -> Any:
        self.prompts.append(prompt)
        self.json_flags.append(json_response)
        return self.reply(prompt) if callable(self.reply) else self.reply

    async def analyze_image(self, prompt: str, image_url: str, system_instruction: Optional[str] = None) -> Any:
        self.image_calls.append(
            {"prompt": prompt, "image_url": image_url, "system_instruction": system_instruction}
        )
        return self.image_reply(prompt) if callable(self.image_reply) else self.image_reply

    async def health_check(self) -> bool:
        return self.healthy

    @property
    def call_count(self) -> int:
        return len(self.prompts) + len(self.image_calls)


class FakeEmailSender(EmailSender):
    """Records sends; raises `error` instead when one is set."""

    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.sent: List[dict] = []

    async def send(self, to: str, subject: str, body: str) -> None:
        if self.error is not None:
            raise self.error
        self.sent.append({"to": to, "subject": subject, "body": body})


# ══════════════════════════════════════════════════════════════════════════
# Function-Scoped Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def store(tmp_path):
    """
    A SqlEntityStore over its own SQLite file.

    A file (not :memory:) so that concurrent sessions inside one request
    each get their own connection to the same data.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'entities.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False)
    yield SqlEntityStore(factory)

    await engine.dispose()


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def fake_email():
    return FakeEmailSender()


@pytest.fixture
def failing_email():
    return FakeEmailSender(error=EmailDeliveryError(message="Email service rejected the message (422)"))


@pytest.fixture
def translator():
    return Translator.from_directory()


@pytest.fixture
def temp_storage(tmp_path):
    storage_dir = tmp_path / "storage"
    storage_dir.mkdir()
    return str(storage_dir)


@pytest.fixture
def auth_service():
    return AuthService(secret=TEST_JWT_SECRET)


@pytest.fixture
def identity():
    return Identity(id="user-1", email="asha@example.com", full_name="Asha Rao", role="user")


@pytest.fixture
def auth_headers(auth_service, identity):
    token = auth_service.issue_token(identity)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def sample_jpeg_bytes():
    """Smallest JPEG header libmagic recognises: SOI + JFIF APP0 + EOI."""
    return (
        b'\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00'
        b'\xff\xd9'
    )


@pytest.fixture
def sample_pdf_bytes():
    return (
        b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog /Pages 2 0 R >>\nendobj\n"
        b"2 0 obj\n<< /Type /Pages /Kids [] /Count 0 >>\nendobj\n"
        b"trailer\n<< /Root 1 0 R >>\n%%EOF\n"
    )


@pytest.fixture
def app(store, fake_llm, fake_email, translator, temp_storage, auth_service):
    """A fresh application with every collaborator replaced by a test one."""
    from healthflux.main import create_app

    application = create_app()
    application.state.store = store
    application.state.llm = fake_llm
    application.state.email_sender = fake_email
    application.state.translator = translator
    application.state.file_service = FileService(temp_storage)
    application.state.auth = auth_service
    return application


@pytest_asyncio.fixture
async def test_client(app):
    """httpx AsyncClient routed straight into the ASGI app (no server, no lifespan)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def seed(store) -> Callable:
    """`await seed("Profile", {...})` creates a record and returns it."""

    async def _seed(entity: str, data: dict) -> dict:
        return await store.create(entity, data)

    return _seed
