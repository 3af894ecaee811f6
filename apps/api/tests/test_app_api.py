from fastapi.testclient import TestClient

from api.app import create_app
from api.dependencies import get_jwt_manager


def test_health_endpoint_response_shape() -> None:
    client = TestClient(create_app())
    response = client.get("/healthz")
    body = response.json()

    assert response.status_code == 200
    assert body["success"] is True
    assert body["data"]["status"] == "ok"


def test_ready_endpoint_response_shape() -> None:
    client = TestClient(create_app())
    response = client.get("/readyz")
    body = response.json()

    assert response.status_code == 200
    assert body["success"] is True
    assert body["data"]["status"] == "ready"


def test_missing_bearer_token_uses_error_envelope() -> None:
    client = TestClient(create_app())

    response = client.get("/v1/routes/history")
    body = response.json()

    assert response.status_code == 401
    assert body == {"success": False, "error": {"code": "UNAUTHORIZED", "message": "Missing bearer token"}}


def test_invalid_bearer_token_is_rejected() -> None:
    client = TestClient(create_app())

    response = client.get("/v1/reports/mine", headers={"Authorization": "Bearer not.a.token"})

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "UNAUTHORIZED"


def test_validation_error_uses_error_envelope() -> None:
    client = TestClient(create_app())

    token = get_jwt_manager().issue_access_token("user-1", jti="jti-1")
    response = client.get("/v1/reports/nearby?lat=200&lng=0", headers={"Authorization": f"Bearer {token}"})
    body = response.json()

    assert response.status_code == 422
    assert body["success"] is False
    assert body["error"]["code"] == "VALIDATION_ERROR"
