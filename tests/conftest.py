import base64
from typing import List
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from museum.backend import Backend
from museum.config import Settings
from museum.entities import Base, CatalogObject
from museum.errors import GenerationError
from museum.image_client import MockImageGenerator
from museum.llm_client import TextGenerator
from museum.storage import MockStorage
from museum.theme_catalog import ThemeCatalog
from server import create_app

ADMIN_EMAIL = "admin@museum.test"
PNG_1PX = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)
PNG_DATA_URI = "data:image/png;base64," + base64.b64encode(PNG_1PX).decode("ascii")


class ScriptedTextGenerator(TextGenerator):
    """Hands out queued responses in order; an Exception in the queue is raised instead."""

    def __init__(self, *responses):
        self.responses: List = list(responses)
        self.calls: List[dict] = []

    def queue(self, *responses):
        self.responses.extend(responses)

    def generate_text(self, prompt, *, temperature=None, system_prompt=None, json_mode=False):
        self.calls.append({
            "prompt": prompt,
            "temperature": temperature,
            "system_prompt": system_prompt,
            "json_mode": json_mode,
        })
        if not self.responses:
            raise GenerationError("no scripted response left")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite://",
        jwt_secret="test-secret-for-the-museum-suite-0123456789",
        ai_provider="mock",
        storage_type="mock",
        storage_base_url="https://cdn.test",
        admin_emails=[ADMIN_EMAIL],
    ).validate()


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True)
    yield factory
    engine.dispose()


@pytest.fixture
def text_generator():
    return ScriptedTextGenerator()


@pytest.fixture
def image_generator():
    return MockImageGenerator()


@pytest.fixture
def storage():
    return MockStorage("https://cdn.test")


@pytest.fixture
def make_backend(settings, session_factory, text_generator, image_generator, storage):
    def _make(theme_catalog: ThemeCatalog | None = None) -> Backend:
        return Backend(
            settings,
            session_factory=session_factory,
            text_generator=text_generator,
            image_generator=image_generator,
            storage=storage,
            theme_catalog=theme_catalog or ThemeCatalog(),
        )
    return _make


@pytest.fixture
def backend(make_backend):
    return make_backend()


@pytest.fixture
def make_client(make_backend):
    clients = []

    def _make(theme_catalog: ThemeCatalog | None = None) -> TestClient:
        c = TestClient(create_app(make_backend(theme_catalog)))
        clients.append(c)
        return c

    yield _make
    for c in clients:
        c.close()


@pytest.fixture
def client(backend):
    with TestClient(create_app(backend)) as c:
        yield c


@pytest.fixture
def register():
    """Signs a user up through the API; returns {id, email, token, headers}."""

    def _register(client: TestClient, email: str | None = None, password: str = "secret123") -> dict:
        email = email or f"user-{uuid4().hex[:8]}@museum.test"
        resp = client.post("/auth/signup", json={"email": email, "password": password})
        assert resp.status_code == 201, resp.text
        data = resp.json()
        data["headers"] = {"Authorization": f"Bearer {data['token']}"}
        return data

    return _register


@pytest.fixture
def seed_object(session_factory):
    """Inserts a CatalogObject directly; returns its dict (with variant ids)."""

    def _seed(
        *,
        object_id: str | None = None,
        name: str = "Wooden Clock",
        user_made: bool = False,
        surface: str = "Wall",
        variant_count: int = 2,
    ) -> dict:
        variants = [
            {"id": uuid4().hex, "name": f"Variant {i}", "color": f"#00000{i}", "src": f"https://cdn.test/v{i}.png"}
            for i in range(variant_count)
        ]
        session = session_factory()
        try:
            obj = CatalogObject(
                id=object_id or str(uuid4()),
                name=name,
                description=f"{name} description",
                current_image_variant=dict(variants[0]) if variants else {},
                image_variants=variants,
                is_user_made=user_made,
                placement_surface=surface,
            )
            session.add(obj)
            session.commit()
            return obj.to_dict()
        finally:
            session.close()

    return _seed
