"""Unit tests for the HTTP API."""

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from mailsorter.api import create_app
from mailsorter.api.deps import get_classifier, get_mailbox
from mailsorter.exceptions import ClassifierTimeoutError, GmailAPIError, ParseError
from mailsorter.gmail import GmailClient

USER_HEADERS = {"X-User-Email": "user@example.com"}


@pytest.fixture
def api_factory(mock_settings, engine, mailbox):
    def build(chat=None) -> TestClient:
        app = create_app(mock_settings, engine=engine)
        app.dependency_overrides[get_mailbox] = lambda: mailbox
        app.dependency_overrides[get_classifier] = lambda: chat
        return TestClient(app)

    return build


class TestHealth:
    def test_health(self, api_factory) -> None:
        with api_factory() as client:
            response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "database": True, "classifierConfigured": True}


class TestAiEndpoints:
    def test_missing_user_header_is_unauthorized(self, api_factory) -> None:
        with api_factory() as client:
            response = client.get("/api/ai/suggestions")

        assert response.status_code == 401

    def test_analyze_apply_flow(self, api_factory, chat_factory, mailbox, promo_message) -> None:
        mailbox.add(promo_message)
        chat = chat_factory('{"action": "label", "label_name": "E-commerce", "confidence": 0.8, "reasoning": "sale"}')

        with api_factory(chat) as client:
            analyzed = client.post("/api/ai/analyze", json={"emailIds": [promo_message.id]}, headers=USER_HEADERS)
            assert analyzed.status_code == 200
            [suggestion] = analyzed.json()
            assert suggestion["emailId"] == promo_message.id
            assert suggestion["labelName"] == "E-commerce"
            assert suggestion["status"] == "pending"

            applied = client.post("/api/ai/apply", json={"suggestionId": suggestion["id"]}, headers=USER_HEADERS)
            assert applied.status_code == 200
            assert applied.json() == {"status": "applied"}

            listed = client.get("/api/ai/suggestions", params={"status": "applied"}, headers=USER_HEADERS)
            assert [s["id"] for s in listed.json()] == [suggestion["id"]]

            labels = client.get("/api/smart-labels", headers=USER_HEADERS).json()
            assert [label["name"] for label in labels] == ["E-commerce"]

    def test_suggestions_are_scoped_by_user(self, api_factory, chat_factory, mailbox, promo_message) -> None:
        mailbox.add(promo_message)
        chat = chat_factory('{"action": "archive", "confidence": 0.5}')

        with api_factory(chat) as client:
            client.post("/api/ai/analyze", json={"emailIds": [promo_message.id]}, headers=USER_HEADERS)
            mine = client.get("/api/ai/suggestions", headers=USER_HEADERS).json()
            theirs = client.get("/api/ai/suggestions", headers={"X-User-Email": "other@example.com"}).json()

        assert len(mine) == 1
        assert theirs == []

    def test_reject_and_conflicts(self, api_factory, chat_factory, mailbox, promo_message) -> None:
        mailbox.add(promo_message)
        chat = chat_factory('{"action": "delete", "confidence": 0.9}')

        with api_factory(chat) as client:
            [suggestion] = client.post(
                "/api/ai/analyze", json={"emailIds": [promo_message.id]}, headers=USER_HEADERS
            ).json()

            rejected = client.post(f"/api/ai/suggestions/{suggestion['id']}/reject", headers=USER_HEADERS)
            assert rejected.status_code == 204

            again = client.post(f"/api/ai/suggestions/{suggestion['id']}/reject", headers=USER_HEADERS)
            assert again.status_code == 204

            apply_rejected = client.post(
                "/api/ai/apply", json={"suggestionId": suggestion["id"]}, headers=USER_HEADERS
            )
            assert apply_rejected.status_code == 409

            missing = client.post("/api/ai/suggestions/nope/reject", headers=USER_HEADERS)
            assert missing.status_code == 404

    def test_analyze_without_classifier_is_unavailable(self, api_factory, mailbox, promo_message) -> None:
        mailbox.add(promo_message)

        with api_factory(chat=None) as client:
            response = client.post("/api/ai/analyze", json={"emailIds": [promo_message.id]}, headers=USER_HEADERS)

        assert response.status_code == 503

    def test_analyze_empty_request_is_bad_request(self, api_factory, chat_factory) -> None:
        with api_factory(chat_factory()) as client:
            response = client.post("/api/ai/analyze", json={"emailIds": []}, headers=USER_HEADERS)

        assert response.status_code == 400

    @pytest.mark.parametrize(
        ("error", "status"),
        [(ClassifierTimeoutError("slow"), 504), (GmailAPIError("down"), 502), (ParseError("garbled"), 502)],
    )
    def test_upstream_errors_map_to_gateway_statuses(
        self, api_factory, chat_factory, mailbox, message_factory, error, status
    ) -> None:
        mailbox.add(message_factory("m1"))

        with api_factory(chat_factory(error)) as client:
            response = client.post(
                "/api/ai/analyze-sender", json={"senderEmail": "promo@shop.example"}, headers=USER_HEADERS
            )

        assert response.status_code == status

    def test_analyze_sender_and_update_preference(self, api_factory, chat_factory, mailbox, message_factory) -> None:
        mailbox.add(message_factory("m1"))
        mailbox.add(message_factory("m2"))
        chat = chat_factory(
            '{"suggested_action": "archive", "suggested_label": "", "confidence": 0.7,'
            ' "reasoning": "promos", "sender_type": "commercial"}'
        )

        with api_factory(chat) as client:
            analyzed = client.post(
                "/api/ai/analyze-sender", json={"senderEmail": "promo@shop.example"}, headers=USER_HEADERS
            )
            assert analyzed.status_code == 200
            body = analyzed.json()
            assert body["emailCount"] == 2
            assert body["analysis"]["suggested_action"] == "archive"
            assert body["analysis"]["sender_type"] == "commercial"
            preference = body["preference"]
            assert preference["autoApply"] is False

            updated = client.put(
                f"/api/senders/{preference['id']}/preferences",
                json={"autoApply": True, "defaultAction": "delete", "defaultLabel": ""},
                headers=USER_HEADERS,
            )
            assert updated.status_code == 200
            assert updated.json()["autoApply"] is True

            senders = client.get("/api/senders", headers=USER_HEADERS).json()
            assert [s["senderEmail"] for s in senders] == ["promo@shop.example"]

            missing = client.put(
                "/api/senders/nope/preferences",
                json={"autoApply": True, "defaultAction": "keep"},
                headers=USER_HEADERS,
            )
            assert missing.status_code == 404

    def test_apply_bulk(self, api_factory, mailbox, message_factory) -> None:
        for i in range(3):
            mailbox.add(message_factory(f"m{i}"))
        mailbox.fail_modify.add("m1")

        with api_factory() as client:
            response = client.post(
                "/api/ai/apply-bulk",
                json={"senderEmail": "promo@shop.example", "action": "archive", "labelName": ""},
                headers=USER_HEADERS,
            )

        assert response.status_code == 200
        assert response.json() == {"applied": 2, "total": 3}


class TestSmartLabelEndpoints:
    def test_create_is_idempotent_by_name(self, api_factory, mailbox) -> None:
        with api_factory() as client:
            first = client.post(
                "/api/smart-labels",
                json={"name": "Invoices", "description": "Bills", "keywords": ["invoice"]},
                headers=USER_HEADERS,
            )
            second = client.post("/api/smart-labels", json={"name": "Invoices"}, headers=USER_HEADERS)

        assert first.status_code == 201
        assert first.json()["gmailLabelId"] == second.json()["gmailLabelId"]
        assert first.json()["keywords"] == ["invoice"]
        assert mailbox.create_label_calls == ["Invoices"]

    def test_blank_name_is_bad_request(self, api_factory) -> None:
        with api_factory() as client:
            response = client.post("/api/smart-labels", json={"name": " "}, headers=USER_HEADERS)

        assert response.status_code == 400

    def test_remote_failure_is_bad_gateway(self, api_factory, mailbox) -> None:
        mailbox.fail_create_label = True

        with api_factory() as client:
            response = client.post("/api/smart-labels", json={"name": "Invoices"}, headers=USER_HEADERS)
            labels = client.get("/api/smart-labels", headers=USER_HEADERS).json()

        assert response.status_code == 502
        assert labels == []


class TestRuleEndpoints:
    RULE = {
        "name": "Shop promos",
        "conditions": [{"field": "from", "operator": "endsWith", "value": "@shop.example>"}],
        "actions": [{"type": "markAsRead", "value": ""}, {"type": "archive", "value": ""}],
        "priority": 1,
        "enabled": True,
    }

    def test_rule_crud_and_apply(self, api_factory, mailbox, message_factory) -> None:
        mailbox.add(message_factory("m1"))

        with api_factory() as client:
            created = client.post("/api/rules", json=self.RULE, headers=USER_HEADERS)
            assert created.status_code == 201
            rule_id = created.json()["id"]

            listed = client.get("/api/rules", headers=USER_HEADERS).json()
            assert [r["id"] for r in listed] == [rule_id]

            applied = client.post("/api/rules/apply", json={"emailIds": ["m1"]}, headers=USER_HEADERS)
            assert applied.status_code == 200
            assert applied.json()[0]["ruleId"] == rule_id
            assert applied.json()[0]["applied"] == 2
            assert mailbox.messages["m1"].label_ids == []

            updated = client.put(
                f"/api/rules/{rule_id}", json={**self.RULE, "enabled": False}, headers=USER_HEADERS
            )
            assert updated.json()["enabled"] is False

            deleted = client.delete(f"/api/rules/{rule_id}", headers=USER_HEADERS)
            assert deleted.status_code == 204
            assert client.delete(f"/api/rules/{rule_id}", headers=USER_HEADERS).status_code == 404

    def test_invalid_operator_is_rejected(self, api_factory) -> None:
        bad = {**self.RULE, "conditions": [{"field": "from", "operator": "regex", "value": ".*"}]}

        with api_factory() as client:
            response = client.post("/api/rules", json=bad, headers=USER_HEADERS)

        assert response.status_code == 422

    def test_rule_without_conditions_is_bad_request(self, api_factory) -> None:
        with api_factory() as client:
            created = client.post("/api/rules", json={**self.RULE, "conditions": []}, headers=USER_HEADERS)
            rule_id = client.post("/api/rules", json=self.RULE, headers=USER_HEADERS).json()["id"]
            updated = client.put(
                f"/api/rules/{rule_id}", json={**self.RULE, "conditions": []}, headers=USER_HEADERS
            )

        assert created.status_code == 400
        assert updated.status_code == 400


class TestGmailWiring:
    """Routes built on the real Gmail dependency, with no token on disk."""

    @pytest.fixture
    def client(self, mock_settings, engine):
        app = create_app(mock_settings, engine=engine)
        with TestClient(app) as test_client:
            yield test_client

    def test_database_routes_do_not_need_gmail(self, client) -> None:
        assert client.get("/api/ai/suggestions", headers=USER_HEADERS).json() == []
        assert client.post("/api/ai/suggestions/nope/reject", headers=USER_HEADERS).status_code == 404
        assert client.get("/api/senders", headers=USER_HEADERS).json() == []
        assert client.get("/api/smart-labels", headers=USER_HEADERS).json() == []

        created = client.post("/api/rules", json=TestRuleEndpoints.RULE, headers=USER_HEADERS)
        assert created.status_code == 201
        assert client.delete(f"/api/rules/{created.json()['id']}", headers=USER_HEADERS).status_code == 204

    def test_missing_credentials_fail_only_mailbox_routes(self, client) -> None:
        response = client.post("/api/ai/analyze", json={"emailIds": ["m1"]}, headers=USER_HEADERS)

        assert response.status_code == 503

    def test_missing_token_is_unauthorized_not_interactive(self, client, mock_settings, monkeypatch) -> None:
        mock_settings.gmail_credentials_path.write_text("{}", encoding="utf-8")

        def no_browser(*args, **kwargs):
            raise AssertionError("interactive OAuth started inside a request")

        monkeypatch.setattr("google_auth_oauthlib.flow.InstalledAppFlow.from_client_secrets_file", no_browser)

        response = client.post("/api/ai/analyze", json={"emailIds": ["m1"]}, headers=USER_HEADERS)

        assert response.status_code == 401

    def test_each_request_gets_its_own_gmail_client(self, mock_settings) -> None:
        request = SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace(settings=mock_settings)))

        first = get_mailbox(request)
        second = get_mailbox(request)

        assert isinstance(first, GmailClient)
        assert first is not second
        assert first.allow_interactive is False
        assert first._service is None
