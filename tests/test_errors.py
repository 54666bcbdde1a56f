from fastapi.testclient import TestClient
from app.main import app
import pytest

client = TestClient(app)

def test_404_not_found():
    response = client.get("/non-existent-route")
    assert response.status_code == 404
    data = response.json()
    assert "error" in data
    assert "code" in data
    assert data["code"] == "HTTP_ERROR"

def test_liveness_probe():
    response = client.get("/live")
    assert response.status_code == 200
    assert response.json() == {"status": "alive"}

def test_validation_error_structure():
    # Temporary route with a typed body
    from pydantic import BaseModel

    class Item(BaseModel):
        name: str
        price: int

    @app.post("/test-validation")
    def create_item(item: Item):
        return item

    response = client.post("/test-validation", json={"name": "foo", "price": "invalid"})
    assert response.status_code == 422
    data = response.json()
    assert data["code"] == "VALIDATION_ERROR"
    assert "details" in data
    assert len(data["details"]) > 0

def test_custom_exception():
    from app.core.exceptions import ResourceNotFoundError

    @app.get("/test-custom-error")
    def trigger_custom_error():
        raise ResourceNotFoundError(message="Item not found")

    response = client.get("/test-custom-error")
    assert response.status_code == 404
    data = response.json()
    assert data["code"] == "NOT_FOUND"
    assert data["error"] == "Item not found"

@pytest.mark.parametrize("exc_name, status, code", [
    ("TransportAuthError", 403, "TRANSPORT_AUTH_FAILED"),
    ("AccessDenied", 403, "ACCESS_DENIED"),
    ("FeatureDenied", 402, "FEATURE_DENIED"),
    ("ConcurrencyConflict", 409, "CONCURRENCY_CONFLICT"),
])
def test_error_taxonomy_status_codes(exc_name, status, code):
    from app.core import exceptions

    path = f"/test-{exc_name.lower()}"

    @app.get(path)
    def trigger():
        raise getattr(exceptions, exc_name)()

    response = client.get(path)
    assert response.status_code == status
    assert response.json()["code"] == code
