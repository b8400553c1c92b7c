import pytest
from fastapi.testclient import TestClient

from dispatch.api.application import create_app
from dispatch.identity import Principal


@pytest.fixture()
def app(domain, publisher, verifier):
    return create_app(domain, publisher=publisher, verifier=verifier)


@pytest.fixture()
def client(app):
    return TestClient(app)


@pytest.fixture()
def auth(verifier):
    """Build an Authorization header for a stored user."""

    def _headers(user):
        token = verifier.issue(Principal(id=str(user.id), role=user.role))
        return {"Authorization": f"Bearer {token}"}

    return _headers
