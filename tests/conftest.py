import pytest

from imagehost import create_app, db, bcrypt
from imagehost.config import Config
from imagehost.exceptions import UploadError
from imagehost.identity import IdentityStore
from imagehost.ledger import UploadLedger


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    RATELIMIT_ENABLED = False
    BCRYPT_LOG_ROUNDS = 4
    STORAGE_DOMAIN = "https://img.example.com/"
    HISTORY_LIMIT = 50


class FakeObjectStore(object):
    """In-memory stand-in for ObjectStoreGateway."""

    def __init__(self, domain="https://img.example.com"):
        self.domain = domain
        self.objects = {}
        self.puts = []
        self.tokens = []
        self.fail_puts = False

    def exists(self, key):
        return key in self.objects

    def upload_token(self, key):
        token = f"token-for-{key}"
        self.tokens.append(token)
        return token

    def put(self, key, data, token=None, content_type="image/png"):
        if self.fail_puts:
            raise UploadError()
        self.puts.append((key, data))
        self.objects[key] = data

    def public_url(self, key):
        return f"{self.domain}/{key}"


@pytest.fixture
def store():
    return FakeObjectStore()


@pytest.fixture
def app(store):
    app = create_app(TestConfig, object_store=store)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def identity(app):
    return IdentityStore(db.session, bcrypt)


@pytest.fixture
def ledger(app):
    return UploadLedger(db.session)


@pytest.fixture
def alice(identity):
    return identity.register("alice", "a@x.com", "secret1", "10.0.0.1")


@pytest.fixture
def logged_in(client, alice):
    client.post(
        "/login",
        data={"username": "alice", "password": "secret1"},
    )
    return client
