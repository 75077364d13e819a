import pytest

from api import create_app
from models import storage

PASSWORD = "p1-password"


@pytest.fixture
def app(tmp_path):
    # A file database so threads in the concurrency tests get real connections
    app = create_app("testing", DATABASE_URL=f"sqlite:///{tmp_path / 'test.db'}")
    yield app
    storage.close()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth(app):
    return app.extensions["auth"]


@pytest.fixture
def service(auth):
    return auth["session_service"]


@pytest.fixture
def codec(auth):
    return auth["codec"]


@pytest.fixture
def user(service):
    return service.sign_up("a@x.com", PASSWORD, "u1")


@pytest.fixture
def api_prefix(app):
    return app.config["API_PREFIX"].rstrip("/")


def cookie_value(response, name):
    """Value of a Set-Cookie header for `name`, or None if absent."""
    for header in response.headers.getlist("Set-Cookie"):
        key, _, rest = header.partition("=")
        if key == name:
            return rest.split(";", 1)[0]
    return None


def set_cookie_header(response, name):
    for header in response.headers.getlist("Set-Cookie"):
        if header.startswith(f"{name}="):
            return header
    return None
