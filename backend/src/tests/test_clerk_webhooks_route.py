"""
Tests for the Clerk webhook HTTP endpoint.

Tests cover:
- Delivery validation (body, headers, signature) -> 400
- Processed / duplicate / failed acknowledgements -> 200
- Retryable failures -> 500
- Missing signing secret -> 503
"""

import json
import time
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import IntegrityError

from src.models.organization_membership import OrganizationMembership
from src.models.user import User
from src.models.webhook_event import WebhookEvent

WEBHOOK_URL = "/api/webhooks/clerk"


class TestDeliveryValidation:
    """Requests rejected before anything is logged."""

    def test_missing_body(self, client, sign_webhook, db_session):
        response = client.post(WEBHOOK_URL, content=b"", headers=sign_webhook(b""))

        assert response.status_code == 400
        assert response.json()["detail"] == "Missing request body"
        assert db_session.query(WebhookEvent).count() == 0

    @pytest.mark.parametrize("missing", ["svix-id", "svix-timestamp", "svix-signature"])
    def test_missing_header(self, client, sign_webhook, event_body, sample_user_data, db_session, missing):
        body = event_body("user.created", sample_user_data)
        headers = sign_webhook(body)
        del headers[missing]

        response = client.post(WEBHOOK_URL, content=body, headers=headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "Missing required webhook headers"
        assert db_session.query(WebhookEvent).count() == 0

    def test_tampered_body(self, client, sign_webhook, event_body, sample_user_data, db_session):
        body = event_body("user.created", sample_user_data)
        headers = sign_webhook(body)
        tampered = body.replace(b"John", b"Mallory")

        response = client.post(WEBHOOK_URL, content=tampered, headers=headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid webhook signature"
        assert db_session.query(WebhookEvent).count() == 0
        assert db_session.query(User).count() == 0

    def test_stale_timestamp(self, client, sign_webhook, event_body, sample_user_data):
        body = event_body("user.created", sample_user_data)
        headers = sign_webhook(body, timestamp=int(time.time()) - 3600)

        response = client.post(WEBHOOK_URL, content=body, headers=headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid webhook signature"

    def test_signed_body_without_type(self, client, sign_webhook):
        body = json.dumps({"data": {"id": "user_1"}}).encode()

        response = client.post(WEBHOOK_URL, content=body, headers=sign_webhook(body))

        assert response.status_code == 400


class TestAcknowledgements:
    """Verified deliveries answered with 200."""

    def test_user_created_processed(self, client, sign_webhook, event_body, sample_user_data, db_session):
        body = event_body("user.created", sample_user_data)

        response = client.post(WEBHOOK_URL, content=body, headers=sign_webhook(body, msg_id="msg_1"))

        assert response.status_code == 200
        assert response.json() == {"status": "processed", "eventId": "msg_1"}
        assert db_session.query(User).filter_by(clerk_id="user_clerk_123").one().email == "test@example.com"

    def test_redelivery_is_duplicate(self, client, sign_webhook, event_body, sample_user_data):
        body = event_body("user.created", sample_user_data)
        headers = sign_webhook(body, msg_id="msg_1")

        client.post(WEBHOOK_URL, content=body, headers=headers)
        response = client.post(WEBHOOK_URL, content=body, headers=headers)

        assert response.status_code == 200
        assert response.json() == {"status": "duplicate", "eventId": "msg_1"}

    def test_terminal_failure_acknowledged(self, client, sign_webhook, event_body, db_session):
        body = event_body("user.created", {"first_name": "No Id"})

        response = client.post(WEBHOOK_URL, content=body, headers=sign_webhook(body, msg_id="msg_1"))

        assert response.status_code == 200
        payload = response.json()
        assert payload["status"] == "failed"
        assert payload["eventId"] == "msg_1"
        assert "Missing user id" in payload["error"]
        stored = db_session.query(WebhookEvent).filter_by(clerk_event_id="msg_1").one()
        assert "Missing user id" in stored.error

    def test_unknown_event_type_acknowledged(self, client, sign_webhook, event_body):
        body = event_body("session.created", {"id": "sess_1"})

        response = client.post(WEBHOOK_URL, content=body, headers=sign_webhook(body))

        assert response.status_code == 200
        assert response.json()["status"] == "processed"

    def test_database_error_text_not_returned(self, client, sign_webhook, event_body, sample_user_data, db_session):
        body = event_body("user.created", sample_user_data)
        error = IntegrityError(
            "INSERT INTO users (email) VALUES (%(email)s)",
            {"email": "test@example.com"},
            Exception("duplicate key value violates unique constraint"),
        )

        with patch(
            "src.services.clerk_webhook_handler.ClerkWebhookHandler.process_event",
            side_effect=error,
        ):
            response = client.post(WEBHOOK_URL, content=body, headers=sign_webhook(body, msg_id="msg_1"))

        assert response.status_code == 200
        assert response.json() == {
            "status": "failed",
            "eventId": "msg_1",
            "error": "Webhook processing failed (IntegrityError)",
        }
        stored = db_session.query(WebhookEvent).filter_by(clerk_event_id="msg_1").one()
        assert "test@example.com" in stored.error


class TestRetryableFailures:
    """Failures that make Svix redeliver."""

    def test_out_of_order_membership(
        self, client, sign_webhook, event_body, db_session,
        sample_user_data, sample_org_data, sample_membership_data,
    ):
        membership_body = event_body("organizationMembership.created", sample_membership_data)
        membership_headers = sign_webhook(membership_body, msg_id="msg_mem")

        response = client.post(WEBHOOK_URL, content=membership_body, headers=membership_headers)
        assert response.status_code == 500
        assert "Referenced entity not found" in response.json()["detail"]

        for event_type, data in (("organization.created", sample_org_data), ("user.created", sample_user_data)):
            body = event_body(event_type, data)
            assert client.post(WEBHOOK_URL, content=body, headers=sign_webhook(body)).status_code == 200

        response = client.post(WEBHOOK_URL, content=membership_body, headers=membership_headers)

        assert response.status_code == 200
        assert response.json() == {"status": "processed", "eventId": "msg_mem"}
        assert db_session.query(OrganizationMembership).count() == 1

    def test_event_log_unavailable(self, client, sign_webhook, event_body, sample_user_data):
        body = event_body("user.created", sample_user_data)

        with patch(
            "src.repositories.webhook_event_repository.WebhookEventRepository.log_event",
            side_effect=ConnectionError("connect ECONNREFUSED"),
        ):
            response = client.post(WEBHOOK_URL, content=body, headers=sign_webhook(body))

        assert response.status_code == 500
        assert response.json()["detail"] == "Internal server error"


class TestConfiguration:
    """Endpoint behaviour without a signing secret."""

    def test_unconfigured_secret_returns_503(self, app_config, db_engine, sign_webhook, event_body, sample_user_data):
        from dataclasses import replace
        from main import create_app

        app = create_app(replace(app_config, clerk_webhook_signing_secret=None), engine=db_engine)
        body = event_body("user.created", sample_user_data)

        response = TestClient(app).post(WEBHOOK_URL, content=body, headers=sign_webhook(body))

        assert response.status_code == 503

    def test_health_reports_secret_configured(self, client):
        response = client.get(f"{WEBHOOK_URL}/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "webhook_secret_configured": True}
