"""Unit tests for application wiring and the health endpoint."""

from fastapi.testclient import TestClient

from report_renderer.main import create_app


def test_create_app_wires_shared_state(config):
    application = create_app(config)

    assert application.report_service is not None
    assert application.coordinator is not None
    assert application.fastapi_app is not None


def test_health_endpoint_uses_camel_case(config, make_package):
    make_package("lighthouse-v10.4.0")
    application = create_app(config)

    with TestClient(application.fastapi_app) as client:
        response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {
        "status": "healthy",
        "runningInstalls": [],
        "cachedDocuments": 0,
        "installedAliases": ["lighthouse-v10.4.0"],
    }


def test_routes_are_registered(config):
    application = create_app(config)

    paths = {route.path for route in application.fastapi_app.routes}

    assert {
        "/",
        "/report/{token}",
        "/loading/{version}",
        "/assets/{filename}",
        "/clear-installations",
        "/clear-cache",
        "/health",
    } <= paths


def test_clear_cache_route_empties_shared_cache(config):
    application = create_app(config)
    client = TestClient(application.fastapi_app)

    response = client.get("/clear-cache")

    assert response.status_code == 200
    assert len(application.document_cache) == 0
