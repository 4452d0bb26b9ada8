import os
import socket
import uuid
import pytest
import pytest_asyncio
from moto.server import ThreadedMotoServer

# Dummy AWS credentials for moto
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
os.environ["AWS_SECURITY_TOKEN"] = "testing"
os.environ["AWS_SESSION_TOKEN"] = "testing"
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
# Don't let a developer's endpoint override leak into the tests
os.environ.pop("PLATZIGRAM_DB_ENDPOINT_URL", None)

from platzigram_db.settings import Settings
from platzigram_db.storage.connection import ConnectionManager
from platzigram_db.image_service.service import ImageRepository
from platzigram_db.user_service.service import UserRepository


def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture(scope="session")
def moto_server():
    """In-process DynamoDB endpoint shared by the whole session."""
    port = free_port()
    server = ThreadedMotoServer(ip_address="127.0.0.1", port=port)
    server.start()
    yield "127.0.0.1", port
    server.stop()


@pytest.fixture(scope="function")
def db_settings(moto_server):
    # A fresh database namespace per test keeps tests isolated on one server
    host, port = moto_server
    return Settings(
        host=host,
        port=port,
        database_name=f"test_{uuid.uuid4().hex[:12]}",
        setup_schema=True,
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
        index_poll_interval=0.01,
    )


@pytest_asyncio.fixture
async def manager(db_settings):
    manager = ConnectionManager(db_settings)
    await manager.connect()
    yield manager
    if manager.connected:
        await manager.disconnect()


@pytest.fixture
def images(manager):
    return ImageRepository(manager)


@pytest.fixture
def users(manager):
    return UserRepository(manager)


@pytest.fixture
def fake_conn(mocker):
    """A mocked StorageConnection for error paths the real engine can't produce on demand."""
    conn = mocker.AsyncMock()
    conn.insert.return_value = {"inserted": 1, "errors": 0, "generated_keys": ["9b2f4f4e-6f8e-4e4a-9d3c-3f1d1f0f6a11"]}
    conn.index_wait.return_value = []
    conn.get_all.return_value = []
    return conn


@pytest.fixture
def mocked_manager(mocker, fake_conn):
    """ConnectionManager whose connection opens to ``fake_conn``."""
    mocker.patch(
        "platzigram_db.storage.connection.StorageConnection.open",
        new=mocker.AsyncMock(return_value=fake_conn),
    )
    return ConnectionManager(Settings(database_name="mocked", setup_schema=False))
