import io
import os
import tempfile

# must be set before main is imported, settings are read once
os.environ["FEED_DATABASE_URL"] = "sqlite://"
os.environ["FEED_BASE_DIR"] = tempfile.mkdtemp(prefix="feed-tests-")
os.environ["FEED_NOTIFICATION_BACKEND"] = "local"

import pytest
from fastapi.testclient import TestClient

import main
from dependencies import get_image_storage, get_notification_sink
from models import db_session
from models.db_session import SqlAlchemyBase
from notifications import NotificationSink
from storage import ImageStorage


class RecordingSink(NotificationSink):
    def __init__(self):
        self.events = []

    async def publish(self, event, payload):
        self.events.append((event, payload))


@pytest.fixture(autouse=True)
def database():
    engine = db_session.get_engine()
    SqlAlchemyBase.metadata.drop_all(bind=engine)
    SqlAlchemyBase.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def storage(tmp_path):
    image_storage = ImageStorage(tmp_path, "images")
    image_storage.ensure_root()
    return image_storage


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def client(storage, sink):
    main.app.dependency_overrides[get_image_storage] = lambda: storage
    main.app.dependency_overrides[get_notification_sink] = lambda: sink
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


def _signup_and_login(client, email, name, password="secret123"):
    response = client.put("/auth/signup", json={"email": email, "name": name, "password": password})
    assert response.status_code == 201
    user_id = response.json()["userId"]

    response = client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200
    token = response.json()["token"]

    return {"id": user_id, "name": name, "headers": {"Authorization": f"Bearer {token}"}}


@pytest.fixture
def alice(client):
    return _signup_and_login(client, "alice@feed.io", "Alice")


@pytest.fixture
def bob(client):
    return _signup_and_login(client, "bob@feed.io", "Bob")


def png_upload(name="photo.png", data=b"\x89PNG fake image"):
    return {"image": (name, io.BytesIO(data), "image/png")}


@pytest.fixture
def make_post(client):
    """Create a post through the API and return the response."""

    def _make_post(user, title="A first post", content="Some content here", files=None):
        return client.post(
            "/posts",
            data={"title": title, "content": content},
            files=files if files is not None else png_upload(),
            headers=user["headers"],
        )

    return _make_post


@pytest.fixture
def upload():
    return png_upload
