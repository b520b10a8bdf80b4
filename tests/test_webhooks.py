"""
Order webhook endpoint tests: authentication, provenance, reconciliation, side effects
"""
import json
from decimal import Decimal

from app.config import settings
from app.models import ExternalOrder, PaymentStatus, WebhookEvent
from tests.conftest import order_payload, webhook_headers


class TestOrderWebhook:
    """POST /api/webhooks/orders"""

    def test_new_storefront_order_created(self, post_webhook, db_session, brand, dispatcher):
        response = post_webhook(order_payload(order_id=987, total="100.00", financial_status="paid"))
        assert response.status_code == 200
        assert response.json() == {"ok": True, "outcome": "created"}

        order = db_session.query(ExternalOrder).one()
        assert order.brand_id == brand.id
        assert order.external_order_id == "987"
        assert order.total_amount == Decimal("100.00")
        assert order.commission_amount == Decimal("10.00")
        assert order.brand_earnings == Decimal("90.00")
        assert order.payment_status == PaymentStatus.PAID
        assert dispatcher.calls == [(brand.id, {"id": 987, "topic": "orders/create"})]

    def test_redelivery_updates_without_side_effect(self, post_webhook, db_session, brand, dispatcher):
        post_webhook(order_payload(order_id=987))
        response = post_webhook(order_payload(order_id=987, financial_status="refunded"), topic="orders/updated")
        assert response.status_code == 200
        assert response.json()["outcome"] == "updated"
        assert db_session.query(ExternalOrder).count() == 1
        db_session.expire_all()
        assert db_session.query(ExternalOrder).one().payment_status == PaymentStatus.REFUNDED
        assert len(dispatcher.calls) == 1

    def test_non_storefront_order_skipped(self, post_webhook, db_session, brand, dispatcher):
        payload = order_payload()
        del payload["source_name"]
        response = post_webhook(payload)
        assert response.status_code == 200
        assert response.json() == {"ok": True, "skipped": True}
        assert db_session.query(ExternalOrder).count() == 0
        assert dispatcher.calls == []

    def test_invalid_signature_rejected(self, post_webhook, db_session, brand, dispatcher):
        response = post_webhook(order_payload(), secret="not-the-secret")
        assert response.status_code == 401
        assert response.json()["detail"] == "Unauthorized"
        assert db_session.query(ExternalOrder).count() == 0
        assert db_session.query(WebhookEvent).count() == 0
        assert dispatcher.calls == []

    def test_missing_signature_header_rejected(self, client, brand):
        body = json.dumps(order_payload()).encode()
        headers = webhook_headers(body)
        del headers["X-Shopify-Hmac-Sha256"]
        assert client.post("/api/webhooks/orders", content=body, headers=headers).status_code == 401

    def test_missing_shop_header_rejected(self, client, brand):
        body = json.dumps(order_payload()).encode()
        headers = webhook_headers(body)
        del headers["X-Shopify-Shop-Domain"]
        assert client.post("/api/webhooks/orders", content=body, headers=headers).status_code == 401

    def test_tampered_body_rejected(self, client, db_session, brand):
        body = json.dumps(order_payload(total="100.00")).encode()
        headers = webhook_headers(body)
        tampered = body.replace(b"100.00", b"1.00")
        assert client.post("/api/webhooks/orders", content=tampered, headers=headers).status_code == 401
        assert db_session.query(ExternalOrder).count() == 0

    def test_unknown_shop_without_app_secret_is_unauthorized(self, post_webhook, brand):
        response = post_webhook(order_payload(), shop="stranger.myshopify.com")
        assert response.status_code == 401

    def test_unknown_shop_with_valid_app_secret_is_not_found(self, post_webhook, db_session, brand, monkeypatch):
        monkeypatch.setattr(settings, "SHOPIFY_API_SECRET", "app_level_secret")
        response = post_webhook(order_payload(), shop="stranger.myshopify.com", secret="app_level_secret")
        assert response.status_code == 404
        assert db_session.query(ExternalOrder).count() == 0

    def test_app_secret_accepted_for_known_brand(self, post_webhook, db_session, brand, monkeypatch):
        monkeypatch.setattr(settings, "SHOPIFY_API_SECRET", "app_level_secret")
        response = post_webhook(order_payload(), secret="app_level_secret")
        assert response.status_code == 200
        assert db_session.query(ExternalOrder).count() == 1

    def test_shop_header_is_case_insensitive(self, post_webhook, brand):
        assert post_webhook(order_payload(), shop="ACME.myshopify.com").status_code == 200

    def test_invalid_json_after_auth(self, post_webhook, db_session, brand):
        response = post_webhook(b"{not json")
        assert response.status_code == 400
        assert db_session.query(WebhookEvent).count() == 0

    def test_payload_without_id(self, post_webhook, db_session, brand, dispatcher):
        payload = order_payload()
        del payload["id"]
        response = post_webhook(payload)
        assert response.status_code == 400
        assert db_session.query(ExternalOrder).count() == 0
        assert dispatcher.calls == []

    def test_impossible_total_is_server_error(self, post_webhook, db_session, brand, dispatcher):
        response = post_webhook(order_payload(total="-10.00"))
        assert response.status_code == 500
        assert db_session.query(ExternalOrder).count() == 0
        event = db_session.query(WebhookEvent).one()
        assert event.error
        assert dispatcher.calls == []

    def test_audit_event_recorded(self, post_webhook, db_session, brand):
        post_webhook(order_payload(order_id=42), topic="orders/paid")
        event = db_session.query(WebhookEvent).one()
        assert event.shop_domain == "acme.myshopify.com"
        assert event.topic == "orders/paid"
        assert event.payload_summary == "id=42"
        assert event.processed_at is not None
        assert event.error is None

    def test_brand_without_rate_uses_default(self, post_webhook, db_session, brand):
        brand.commission_rate = None
        db_session.commit()
        post_webhook(order_payload(total="50.00"))
        assert db_session.query(ExternalOrder).one().commission_amount == Decimal("5.00")

    def test_out_of_range_total_is_bad_request(self, post_webhook, db_session, brand, dispatcher):
        response = post_webhook(order_payload(total="1e30"))
        assert response.status_code == 400
        assert db_session.query(ExternalOrder).count() == 0
        event = db_session.query(WebhookEvent).one()
        assert event.processed_at is not None
        assert "Invalid money value" in event.error
        assert dispatcher.calls == []

    def test_wrongly_shaped_field_is_bad_request(self, post_webhook, db_session, brand, dispatcher):
        response = post_webhook(order_payload(customer="x"))
        assert response.status_code == 400
        assert db_session.query(ExternalOrder).count() == 0
        event = db_session.query(WebhookEvent).one()
        assert event.processed_at is not None
        assert event.error
        assert dispatcher.calls == []
