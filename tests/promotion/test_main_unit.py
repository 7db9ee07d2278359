"""Unit tests for the promotion service endpoints."""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from artifact_promotion import main
from artifact_promotion.client.artifactory import ArtifactoryClient
from artifact_promotion.orchestrator import PromotionOrchestrator


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setenv("PROMOTION_ARTIFACTORY_URL", "https://repo.example.com/artifactory")
    monkeypatch.setenv("PROMOTION_ARTIFACTORY_PASSWORD", "s3cret-password")
    with TestClient(main.app) as test_client:
        yield test_client


def _trigger_body(**context_overrides):
    context = {
        "build_name": "widgets",
        "build_key": "PROJ-PLAN-JOB1",
        "build_number": 7,
        "promotion_repo": "libs-release-local",
    }
    context.update(context_overrides)
    return {"context": context, "ci_user": "ci-bot"}


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_status_before_any_promotion(client):
    response = client.get("/promotions/status")

    assert response.status_code == 200
    assert response.json() == {
        "build_key": None,
        "build_number": None,
        "done": True,
        "log": [],
    }


def test_trigger_starts_background_promotion(client):
    with patch.object(PromotionOrchestrator, "start") as start:
        response = client.post("/promotions", json=_trigger_body())

    assert response.status_code == 202
    assert response.json()["status"] == "accepted"
    start.assert_called_once()
    context, repo_client, ci_user = start.call_args.args
    assert context.build_key == "PROJ-PLAN-JOB1"
    assert isinstance(repo_client, ArtifactoryClient)
    assert repo_client.base_url == "https://repo.example.com/artifactory"
    assert ci_user == "ci-bot"


def test_trigger_rejects_invalid_body(client):
    response = client.post("/promotions", json=_trigger_body(build_number=0))

    assert response.status_code == 422


def test_metrics_endpoint(client):
    response = client.get("/metrics")

    assert response.status_code == 200
    assert "promotion_attempts_total" in response.text


def test_redact_secret():
    assert main._redact_secret("s3cret-password") == "s3cr***********"
    assert main._redact_secret("abc") == "***"
