"""
Content collections API tests.

Tests cover:
  - CRUD round trip through /api/v1/collections/<name>
  - write permissions (canManageContent, admin-only collections)
  - payload validation (required fields, URL, email, min length)
  - audience filtering for messages / events
  - domain actions: highlight cap, news highlight toggle, read receipts,
    quick links with {userEmail}, document download audit
  - live snapshot stream
"""

import json

import pytest

from app import collections as col
from app.models import db


# ═══════════════════════════════════════════════════════════════
# FIXTURES
# ═══════════════════════════════════════════════════════════════

NEWS = {
    "title": "Nova plataforma de investimentos",
    "snippet": "Lançamento previsto para setembro.",
    "category": "Produtos",
    "date": "2024-08-12",
    "imageUrl": "https://cdn.portal.test/plataforma.png",
    "link": "https://portal.test/news/plataforma",
}


@pytest.fixture()
def editor_headers(store, auth_headers):
    store.add(col.COLLABORATORS, {
        "name": "Editor", "email": "editor@portal.test", "axis": "Marketing", "area": "Conteúdo",
        "position": "Analista", "leader": "Chefe", "segment": "Corporativo", "city": "Rio",
        "permissions": {"canManageContent": True},
    })
    return auth_headers("editor@portal.test")


# ═══════════════════════════════════════════════════════════════
# CRUD
# ═══════════════════════════════════════════════════════════════

class TestCrud:
    def test_create_then_list_round_trip(self, client, editor_headers):
        res = client.post("/api/v1/collections/newsItems", json=NEWS, headers=editor_headers)
        assert res.status_code == 201
        created = res.get_json()
        assert created["id"]

        listed = client.get("/api/v1/collections/newsItems", headers=editor_headers).get_json()
        assert len(listed) == 1
        for key, value in NEWS.items():
            assert listed[0][key] == value
        assert listed[0]["isHighlight"] is False

    def test_get_patch_delete(self, client, editor_headers):
        created = client.post("/api/v1/collections/newsItems", json=NEWS, headers=editor_headers).get_json()
        url = f"/api/v1/collections/newsItems/{created['id']}"

        assert client.get(url, headers=editor_headers).get_json()["title"] == NEWS["title"]

        res = client.patch(url, json={"title": "Atualizado"}, headers=editor_headers)
        assert res.status_code == 200
        assert res.get_json()["title"] == "Atualizado"
        assert res.get_json()["snippet"] == NEWS["snippet"]

        assert client.delete(url, headers=editor_headers).status_code == 200
        assert client.get(url, headers=editor_headers).status_code == 404

    def test_news_sorted_newest_first(self, client, editor_headers):
        for day in ("2024-08-01", "2024-08-20", "2024-08-10"):
            client.post("/api/v1/collections/newsItems", json={**NEWS, "date": day}, headers=editor_headers)
        listed = client.get("/api/v1/collections/newsItems", headers=editor_headers).get_json()
        assert [n["date"] for n in listed] == ["2024-08-20", "2024-08-10", "2024-08-01"]

    def test_br_dates_stored_as_iso_and_sorted(self, client, editor_headers):
        for day in ("2024-08-01", "15/09/2024"):
            client.post("/api/v1/collections/newsItems", json={**NEWS, "date": day}, headers=editor_headers)
        listed = client.get("/api/v1/collections/newsItems", headers=editor_headers).get_json()
        assert [n["date"] for n in listed] == ["2024-09-15", "2024-08-01"]

    def test_legacy_br_dates_sort_chronologically(self, client, store, editor_headers):
        store.add(col.NEWS, {**NEWS, "date": "15/09/2024"})
        store.add(col.NEWS, {**NEWS, "date": "2024-08-01"})
        listed = client.get("/api/v1/collections/newsItems", headers=editor_headers).get_json()
        assert [n["date"] for n in listed] == ["15/09/2024", "2024-08-01"]

    def test_unknown_collection_404(self, client, user_headers):
        res = client.get("/api/v1/collections/secrets", headers=user_headers)
        assert res.status_code == 404

    def test_update_missing_record_404(self, client, editor_headers):
        res = client.patch("/api/v1/collections/newsItems/missing", json={"title": "x"}, headers=editor_headers)
        assert res.status_code == 404


# ═══════════════════════════════════════════════════════════════
# PERMISSIONS & VALIDATION
# ═══════════════════════════════════════════════════════════════

class TestPermissions:
    def test_requires_authentication(self, client):
        assert client.get("/api/v1/collections/newsItems").status_code == 401

    def test_regular_user_cannot_write(self, client, user_headers):
        res = client.post("/api/v1/collections/newsItems", json=NEWS, headers=user_headers)
        assert res.status_code == 403
        assert res.get_json()["redirect"] == "/dashboard"

    def test_collaborators_are_admin_only(self, client, editor_headers, admin_headers):
        payload = {
            "name": "Novo", "email": "novo@portal.test", "axis": "A", "area": "B",
            "position": "C", "leader": "D", "segment": "E", "city": "F",
        }
        assert client.post("/api/v1/collections/collaborators", json=payload,
                           headers=editor_headers).status_code == 403
        assert client.post("/api/v1/collections/collaborators", json=payload,
                           headers=admin_headers).status_code == 201

    def test_missing_required_field_422(self, client, editor_headers):
        res = client.post("/api/v1/collections/newsItems", json={"title": "Sem resto"}, headers=editor_headers)
        assert res.status_code == 422
        details = res.get_json()["details"]
        assert "snippet" in details and "date" in details

    def test_invalid_url_and_email_rejected(self, client, admin_headers):
        res = client.post("/api/v1/collections/labs", json={
            "title": "Lab", "category": "Aula", "lastModified": "2024-08-01", "videoUrl": "not a url",
        }, headers=admin_headers)
        assert res.status_code == 422
        assert "videoUrl" in res.get_json()["details"]

        res = client.post("/api/v1/collections/collaborators", json={
            "name": "X", "email": "sem-arroba", "axis": "A", "area": "B",
            "position": "C", "leader": "D", "segment": "E", "city": "F",
        }, headers=admin_headers)
        assert res.status_code == 422
        assert "email" in res.get_json()["details"]

    def test_idle_message_minimum_length(self, client, admin_headers):
        res = client.post("/api/v1/collections/idleFabMessages", json={"text": "curto"}, headers=admin_headers)
        assert res.status_code == 422

    def test_non_json_body_rejected(self, client, editor_headers):
        res = client.post("/api/v1/collections/newsItems", data="title=x",
                          headers={**editor_headers, "Content-Type": "application/x-www-form-urlencoded"})
        assert res.status_code == 415

    def test_multipart_body_rejected(self, client, editor_headers):
        res = client.post("/api/v1/collections/newsItems", data={"title": "x"},
                          content_type="multipart/form-data", headers=editor_headers)
        assert res.status_code == 415


# ═══════════════════════════════════════════════════════════════
# AUDIENCE
# ═══════════════════════════════════════════════════════════════

class TestAudience:
    def test_messages_filtered_by_recipient(self, client, store, collaborator, user_headers, admin_headers):
        store.add(col.MESSAGES, {"title": "Para todos", "content": "x", "sender": "RH",
                                 "date": "2024-08-01", "recipientIds": ["all"], "readBy": []})
        store.add(col.MESSAGES, {"title": "Para Ana", "content": "x", "sender": "RH",
                                 "date": "2024-08-02", "recipientIds": [collaborator["id"]], "readBy": []})
        store.add(col.MESSAGES, {"title": "Para outro", "content": "x", "sender": "RH",
                                 "date": "2024-08-03", "recipientIds": ["someone-else"], "readBy": []})

        mine = client.get("/api/v1/collections/messages", headers=user_headers).get_json()
        assert [m["title"] for m in mine] == ["Para Ana", "Para todos"]

        everything = client.get("/api/v1/collections/messages", headers=admin_headers).get_json()
        assert len(everything) == 3

    def test_mark_message_read(self, client, store, collaborator, user_headers):
        message = store.add(col.MESSAGES, {"title": "Oi", "content": "x", "sender": "RH",
                                           "date": "2024-08-01", "recipientIds": ["all"], "readBy": []})
        for _ in range(2):
            res = client.post(f"/api/v1/messages/{message['id']}/read", headers=user_headers)
            assert res.status_code == 200
        assert store.get(col.MESSAGES, message["id"])["readBy"] == [collaborator["id"]]

    def test_cannot_read_message_addressed_to_others(self, client, store, collaborator, user_headers):
        message = store.add(col.MESSAGES, {"title": "Privada", "content": "x", "sender": "RH",
                                           "date": "2024-08-01", "recipientIds": ["other"], "readBy": []})
        res = client.post(f"/api/v1/messages/{message['id']}/read", headers=user_headers)
        assert res.status_code == 404


# ═══════════════════════════════════════════════════════════════
# DOMAIN ACTIONS
# ═══════════════════════════════════════════════════════════════

class TestDomainActions:
    def _highlight(self, store, title, active):
        return store.add(col.HIGHLIGHTS, {
            "title": title, "description": "d", "imageUrl": "https://cdn.portal.test/h.png",
            "link": "/news", "isActive": active,
        })

    def test_highlight_cap_of_three(self, client, store, admin_headers):
        for i in range(3):
            self._highlight(store, f"Ativo {i}", True)
        extra = self._highlight(store, "Inativo", False)

        res = client.post(f"/api/v1/highlights/{extra['id']}/toggle-active", headers=admin_headers)
        assert res.status_code == 409

        res = client.post("/api/v1/collections/highlights", json={
            "title": "Novo", "description": "d", "imageUrl": "https://cdn.portal.test/n.png",
            "link": "/x", "isActive": True,
        }, headers=admin_headers)
        assert res.status_code == 409

    def test_highlight_toggle_off_always_allowed(self, client, store, admin_headers):
        active = [self._highlight(store, f"Ativo {i}", True) for i in range(3)]
        res = client.post(f"/api/v1/highlights/{active[0]['id']}/toggle-active", headers=admin_headers)
        assert res.status_code == 200
        assert res.get_json()["isActive"] is False

    def test_toggle_news_highlight(self, client, store, admin_headers):
        item = store.add(col.NEWS, {**NEWS, "isHighlight": False})
        res = client.post(f"/api/v1/news/{item['id']}/toggle-highlight", headers=admin_headers)
        assert res.get_json()["isHighlight"] is True
        res = client.post(f"/api/v1/news/{item['id']}/toggle-highlight", headers=admin_headers)
        assert res.get_json()["isHighlight"] is False

    def test_quick_links_order_and_user_email(self, client, store, collaborator, admin_headers, user_headers):
        for name, link, specific in (
            ("CRM", "https://crm.portal.test/?u={userEmail}", True),
            ("Wiki", "https://wiki.portal.test", False),
        ):
            res = client.post("/api/v1/collections/quickLinks", json={
                "name": name, "imageUrl": "https://cdn.portal.test/i.png", "link": link,
                "isUserSpecific": specific,
            }, headers=admin_headers)
            assert res.status_code == 201
        client.post("/api/v1/collections/quickLinks", json={
            "name": "Admin", "imageUrl": "https://cdn.portal.test/i.png", "link": "https://admin.portal.test",
            "recipientIds": ["admins-only"],
        }, headers=admin_headers)

        links = client.get("/api/v1/quick-links/visible", headers=user_headers).get_json()
        assert [link["name"] for link in links] == ["CRM", "Wiki"]
        assert [link["order"] for link in links] == [0, 1]
        assert links[0]["link"] == f"https://crm.portal.test/?u={collaborator['email']}"

    def test_document_download_records_audit(self, client, store, collaborator, user_headers):
        document = store.add(col.DOCUMENTS, {
            "name": "Manual.pdf", "category": "RH", "type": "pdf", "size": "1 MB",
            "lastModified": "2024-08-01", "downloadUrl": "https://files.portal.test/manual.pdf",
        })
        res = client.post(f"/api/v1/documents/{document['id']}/download", headers=user_headers)
        assert res.status_code == 200
        assert res.get_json()["downloadUrl"] == "https://files.portal.test/manual.pdf"

        logs = store.list(col.AUDIT_LOGS)
        assert len(logs) == 1
        assert logs[0]["eventType"] == "document_download"
        assert logs[0]["userId"] == collaborator["id"]
        assert logs[0]["details"]["documentName"] == "Manual.pdf"


# ═══════════════════════════════════════════════════════════════
# LIVE STREAM
# ═══════════════════════════════════════════════════════════════

class TestStream:
    def test_stream_sends_initial_snapshot(self, client, store, user_headers):
        store.add(col.LABS, {"title": "Aula 1", "category": "Mercado",
                             "lastModified": "2024-08-01", "videoUrl": "https://video.test/1"})
        res = client.get("/api/v1/collections/labs/stream", headers=user_headers, buffered=False)
        assert res.status_code == 200
        assert res.mimetype == "text/event-stream"

        chunk = next(iter(res.response))
        if isinstance(chunk, bytes):
            chunk = chunk.decode("utf-8")
        assert chunk.startswith("event: snapshot\n")
        payload = json.loads(chunk.split("data: ", 1)[1])
        assert payload["collection"] == "labs"
        assert [r["title"] for r in payload["records"]] == ["Aula 1"]
        res.close()

    def test_stream_does_not_hold_a_transaction(self, client, store, user_headers):
        store.add(col.LABS, {"title": "Aula 1", "category": "Mercado",
                             "lastModified": "2024-08-01", "videoUrl": "https://video.test/1"})
        res = client.get("/api/v1/collections/labs/stream", headers=user_headers, buffered=False)
        assert res.status_code == 200
        assert not db.session.in_transaction()

        store.add(col.LABS, {"title": "Aula 2", "category": "Mercado",
                             "lastModified": "2024-08-02", "videoUrl": "https://video.test/2"})
        chunks = iter(res.response)
        initial, update = [
            json.loads((c.decode("utf-8") if isinstance(c, bytes) else c).split("data: ", 1)[1])
            for c in (next(chunks), next(chunks))
        ]
        assert update["version"] > initial["version"]
        assert [r["title"] for r in update["records"]] == ["Aula 1", "Aula 2"]
        res.close()
