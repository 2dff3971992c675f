"""
Quick poll tests.

Tests cover:
  - create validation (question, options, recipients)
  - one answer per user, answer must be an option
  - results with counts and percentages
  - pending polls per target page
  - delete cascades to responses
"""

import pytest

from app import collections as col
from app.services import poll_service


@pytest.fixture()
def poll(client, admin_headers):
    res = client.post("/api/v1/polls", json={
        "question": "Qual horário prefere para o town hall?",
        "options": [{"value": "Manhã"}, {"value": "Tarde"}, "Noite"],
        "targetPage": "/dashboard",
        "recipientIds": ["all"],
    }, headers=admin_headers)
    assert res.status_code == 201
    return res.get_json()


class TestCreate:
    def test_options_normalised(self, poll):
        assert poll["options"] == ["Manhã", "Tarde", "Noite"]
        assert poll["isActive"] is True

    def test_requires_two_options(self, client, admin_headers):
        res = client.post("/api/v1/polls", json={
            "question": "Sim?", "options": ["Sim"], "targetPage": "/dashboard", "recipientIds": ["all"],
        }, headers=admin_headers)
        assert res.status_code == 422
        assert "options" in res.get_json()["details"]

    def test_requires_recipients(self, client, admin_headers):
        res = client.post("/api/v1/polls", json={
            "question": "Sim?", "options": ["Sim", "Não"], "targetPage": "/dashboard", "recipientIds": [],
        }, headers=admin_headers)
        assert res.status_code == 422
        assert "recipientIds" in res.get_json()["details"]

    def test_regular_user_cannot_create(self, client, collaborator, user_headers):
        res = client.post("/api/v1/polls", json={
            "question": "Sim?", "options": ["Sim", "Não"], "targetPage": "/dashboard", "recipientIds": ["all"],
        }, headers=user_headers)
        assert res.status_code == 403


class TestRespond:
    def test_answer_once(self, client, collaborator, user_headers, poll):
        url = f"/api/v1/polls/{poll['id']}/responses"
        res = client.post(url, json={"answer": "Tarde"}, headers=user_headers)
        assert res.status_code == 201
        body = res.get_json()
        assert body["userId"] == collaborator["id"]
        assert body["userName"] == "Ana Souza"

        again = client.post(url, json={"answer": "Manhã"}, headers=user_headers)
        assert again.status_code == 409

    def test_answer_must_be_an_option(self, client, collaborator, user_headers, poll):
        res = client.post(f"/api/v1/polls/{poll['id']}/responses",
                          json={"answer": "Madrugada"}, headers=user_headers)
        assert res.status_code == 422

    def test_answer_required(self, client, collaborator, user_headers, poll):
        res = client.post(f"/api/v1/polls/{poll['id']}/responses", json={}, headers=user_headers)
        assert res.status_code == 400

    def test_inactive_poll_cannot_be_answered(self, client, collaborator, user_headers, admin_headers, poll):
        client.patch(f"/api/v1/polls/{poll['id']}", json={"isActive": False}, headers=admin_headers)
        res = client.post(f"/api/v1/polls/{poll['id']}/responses",
                          json={"answer": "Tarde"}, headers=user_headers)
        assert res.status_code == 404


class TestResults:
    def test_counts_and_percentages(self, client, store, collaborator, user_headers, admin_headers, poll):
        client.post(f"/api/v1/polls/{poll['id']}/responses", json={"answer": "Tarde"}, headers=user_headers)
        client.post(f"/api/v1/polls/{poll['id']}/responses", json={"answer": "Tarde"}, headers=admin_headers)
        store.add(col.poll_responses(poll["id"]), {"userId": "u3", "userName": "U3", "answer": "Noite"})
        store.add(col.poll_responses(poll["id"]), {"userId": "u4", "userName": "U4", "answer": "Manhã"})

        res = client.get(f"/api/v1/polls/{poll['id']}/results", headers=admin_headers)
        assert res.status_code == 200
        data = res.get_json()
        assert data["totalResponses"] == 4
        by_option = {r["option"]: r for r in data["results"]}
        assert by_option["Tarde"]["count"] == 2
        assert by_option["Tarde"]["percentage"] == 50.0
        assert by_option["Noite"]["percentage"] == 25.0

    def test_results_without_answers(self, poll):
        results = poll_service.poll_results(poll["id"])
        assert results["totalResponses"] == 0
        assert all(r["percentage"] == 0.0 for r in results["results"])


class TestPending:
    def test_pending_until_answered(self, client, collaborator, user_headers, poll):
        pending = client.get("/api/v1/polls/pending?page=/dashboard", headers=user_headers).get_json()
        assert [p["id"] for p in pending] == [poll["id"]]

        client.post(f"/api/v1/polls/{poll['id']}/responses", json={"answer": "Noite"}, headers=user_headers)
        pending = client.get("/api/v1/polls/pending?page=/dashboard", headers=user_headers).get_json()
        assert pending == []

    def test_other_page_has_nothing_pending(self, client, collaborator, user_headers, poll):
        pending = client.get("/api/v1/polls/pending?page=/news", headers=user_headers).get_json()
        assert pending == []

    def test_page_parameter_required(self, client, user_headers):
        assert client.get("/api/v1/polls/pending", headers=user_headers).status_code == 400

    def test_not_addressed_to_caller(self, client, store, collaborator, user_headers):
        store.add(col.POLLS, {"question": "Q", "options": ["a", "b"], "targetPage": "/dashboard",
                              "recipientIds": ["someone-else"], "isActive": True})
        pending = client.get("/api/v1/polls/pending?page=/dashboard", headers=user_headers).get_json()
        assert pending == []


class TestDelete:
    def test_delete_removes_responses(self, client, store, collaborator, user_headers, admin_headers, poll):
        client.post(f"/api/v1/polls/{poll['id']}/responses", json={"answer": "Noite"}, headers=user_headers)
        res = client.delete(f"/api/v1/polls/{poll['id']}", headers=admin_headers)
        assert res.status_code == 200
        assert store.list(col.poll_responses(poll["id"])) == []
        assert client.get(f"/api/v1/polls/{poll['id']}", headers=admin_headers).status_code == 404
