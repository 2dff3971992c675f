"""
Billing endpoint tests.

Tests cover:
  - 401 without Authorization header / with a bad or expired token
  - 403 when the email is not in superAdminEmails
  - 500 when the settings document is missing
  - 200 payload with totals and projection
"""

import pytest

from app import collections as col
from app.services import billing_service
from app.services.identity_service import issue_token

SUPER_ADMIN = "cfo@portal.test"


@pytest.fixture()
def settings_doc(store):
    return store.set(col.SYSTEM_SETTINGS, col.SYSTEM_SETTINGS_DOC, {
        "maintenanceMode": False,
        "superAdminEmails": [SUPER_ADMIN],
    })


class TestBillingAuth:
    def test_missing_header_returns_401(self, client, settings_doc):
        res = client.get("/api/billing")
        assert res.status_code == 401
        assert res.get_json() == {"error": "Não autorizado: Token não fornecido."}

    def test_non_bearer_header_returns_401(self, client, settings_doc):
        res = client.get("/api/billing", headers={"Authorization": "Basic abc"})
        assert res.status_code == 401

    def test_invalid_token_returns_401(self, client, settings_doc):
        res = client.get("/api/billing", headers={"Authorization": "Bearer not-a-jwt"})
        assert res.status_code == 401
        assert res.get_json() == {"error": "Token de autenticação inválido ou expirado."}

    def test_expired_token_returns_401(self, client, settings_doc):
        token = issue_token("cfo", SUPER_ADMIN, expires_in=-60)
        res = client.get("/api/billing", headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 401
        assert res.get_json()["error"] == "Token de autenticação inválido ou expirado."

    def test_non_super_admin_returns_403(self, client, settings_doc, auth_headers):
        res = client.get("/api/billing", headers=auth_headers("someone@portal.test"))
        assert res.status_code == 403
        assert "error" in res.get_json()

    def test_missing_settings_document_returns_500(self, client, auth_headers):
        res = client.get("/api/billing", headers=auth_headers(SUPER_ADMIN))
        assert res.status_code == 500
        assert res.get_json() == {"error": "Erro interno do servidor ao buscar dados de faturamento."}


class TestBillingPayload:
    def test_super_admin_gets_summary(self, client, settings_doc, auth_headers):
        res = client.get("/api/billing", headers=auth_headers(SUPER_ADMIN.upper()))
        assert res.status_code == 200
        data = res.get_json()
        assert data["currentMonth"] == "Agosto 2024"
        assert [s["id"] for s in data["services"]] == ["hosting", "firestore", "storage", "auth", "genkit"]
        assert data["totalCost"] == pytest.approx(91.40)
        assert data["projectedCost"] == pytest.approx(round(91.40 / 15 * 31, 2))

    def test_projection_handles_day_zero(self):
        assert billing_service.project_cost(10.0, 0, 31) == 10.0
