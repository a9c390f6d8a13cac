# -*- coding: utf-8 -*-
"""
Tests for the admin panel actions.

Covers:
1. Subscription overrides (trial, plan, rides)
2. Provider management (create, branding, slugs, online status)
3. POST /api/admin/providers authentication and error shapes
"""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from guincho.core.config import ADMIN_PASSWORD, TRIAL_DEFAULT_RIDES
from guincho.core.errors import ProviderNotFound, ValidationError
from guincho.services.admin_service import check_admin_password, run_action
from guincho.services.metering_service import NO_PLAN, increment_ride
from guincho.services.subscription_service import read_subscription

TIMESTAMPS = {"id", "provider_id", "adesao_paga_em", "proxima_cobranca"}


def _comparable(subscription):
    return {k: v for k, v in subscription.items() if k not in TIMESTAMPS}


# =============================================================================
# PASSWORD CHECK
# =============================================================================

class TestAdminPassword:
    """Tests for check_admin_password"""

    def test_matches(self):
        assert check_admin_password("segredo", expected="segredo") is True

    def test_mismatch(self):
        assert check_admin_password("segredo1", expected="segredo") is False

    def test_empty_is_rejected(self):
        assert check_admin_password("", expected="segredo") is False
        assert check_admin_password(None, expected="segredo") is False


# =============================================================================
# SUBSCRIPTION OVERRIDES
# =============================================================================

class TestSubscriptionOverrides:
    """Tests for trial and plan overrides"""

    async def test_activate_plan_is_visible_to_reader(self, db, make_provider):
        provider = await make_provider()

        result = await run_action(db, "activate_plan", provider.id, {"plano": "profissional"})
        assert result["success"] is True

        read = await read_subscription(db, provider_id=provider.id)
        sub = read["subscription"]
        assert sub["plano"] == "profissional"
        assert sub["adesao_paga"] is True
        assert sub["trial_ativo"] is False
        assert sub["limite_corridas"] == 150
        assert sub["mensalidade_atual"] == 39
        assert sub["corridas_usadas"] == 0
        assert read["needs_plan_selection"] is False

        next_billing = datetime.fromisoformat(sub["proxima_cobranca"])
        assert abs(next_billing - (datetime.utcnow() + timedelta(days=30))) < timedelta(minutes=5)

    async def test_activate_plan_resets_usage(self, db, make_provider, fetch_subscription):
        provider = await make_provider(subscription={
            "plano": "basico", "adesao_paga": True, "limite_corridas": 50, "corridas_usadas": 50,
        })

        await run_action(db, "activate_plan", provider.id, {"plano": "basico"})

        row = await fetch_subscription(provider.id)
        assert row.corridas_usadas == 0

    async def test_invalid_plan(self, db, make_provider):
        provider = await make_provider()

        with pytest.raises(ValidationError) as exc_info:
            await run_action(db, "activate_plan", provider.id, {"plano": "ouro"})
        assert exc_info.value.message == "Plano inválido"

    async def test_toggle_trial_creates_then_flips(self, db, make_provider, fetch_subscription):
        provider = await make_provider()

        first = await run_action(db, "toggle_trial", provider.id)
        assert first["trial_ativo"] is True
        assert first["trial_corridas_restantes"] == TRIAL_DEFAULT_RIDES

        second = await run_action(db, "toggle_trial", provider.id)
        assert second["trial_ativo"] is False
        assert second["trial_corridas_restantes"] == 0

        third = await run_action(db, "toggle_trial", provider.id)
        assert third["trial_ativo"] is True
        assert third["trial_corridas_restantes"] == TRIAL_DEFAULT_RIDES

        row = await fetch_subscription(provider.id)
        assert row.trial_ativo is True

    async def test_set_trial_rides(self, db, make_provider, fetch_subscription):
        provider = await make_provider(subscription={})

        result = await run_action(db, "set_trial_rides", provider.id, {"rides": "7"})

        assert result == {"success": True, "rides": 7}
        row = await fetch_subscription(provider.id)
        assert row.trial_ativo is True
        assert row.trial_corridas_restantes == 7

    @pytest.mark.parametrize("rides", [-1, "abc", None, "2.5"])
    async def test_set_trial_rides_rejects_bad_values(self, db, make_provider, rides):
        provider = await make_provider()

        with pytest.raises(ValidationError):
            await run_action(db, "set_trial_rides", provider.id, {"rides": rides})

    async def test_reset_rides(self, db, make_provider, fetch_subscription):
        provider = await make_provider(subscription={
            "plano": "basico", "adesao_paga": True, "limite_corridas": 50, "corridas_usadas": 33,
        })

        await run_action(db, "reset_rides", provider.id)

        row = await fetch_subscription(provider.id)
        assert row.corridas_usadas == 0
        assert row.plano == "basico"

    async def test_deactivate_blocks_rides(self, db, make_provider, session_factory):
        provider = await make_provider(subscription={"plano": "pro", "adesao_paga": True, "limite_corridas": -1})

        await run_action(db, "deactivate_plan", provider.id)

        async with session_factory() as session:
            result = await increment_ride(session, provider.id)
        assert result["blocked"] is True
        assert result["reason"] == NO_PLAN

    async def test_deactivate_then_activate_matches_fresh_activation(self, db, make_provider):
        reused = await make_provider(subscription={
            "plano": "basico", "adesao_paga": True, "limite_corridas": 50, "corridas_usadas": 20,
        })
        fresh = await make_provider(whatsapp="(21) 91234-5678")

        await run_action(db, "deactivate_plan", reused.id)
        await run_action(db, "activate_plan", reused.id, {"plano": "pro"})
        await run_action(db, "activate_plan", fresh.id, {"plano": "pro"})

        reused_sub = (await read_subscription(db, provider_id=reused.id))["subscription"]
        fresh_sub = (await read_subscription(db, provider_id=fresh.id))["subscription"]
        assert _comparable(reused_sub) == _comparable(fresh_sub)

    async def test_overrides_require_known_provider(self, db):
        with pytest.raises(ProviderNotFound):
            await run_action(db, "reset_rides", "ghost")

    async def test_unknown_action(self, db):
        with pytest.raises(ValidationError) as exc_info:
            await run_action(db, "delete_everything")
        assert exc_info.value.message == "Ação desconhecida: delete_everything"


# =============================================================================
# PROVIDER MANAGEMENT
# =============================================================================

class TestProviderManagement:
    """Tests for provider and branding actions"""

    async def test_list_providers_includes_subscription(self, db, make_provider):
        with_sub = await make_provider(subscription={"plano": "basico", "adesao_paga": True, "limite_corridas": 50})
        without = await make_provider(whatsapp="(21) 91234-5678")

        result = await run_action(db, "list_providers")

        by_id = {p["id"]: p for p in result["providers"]}
        assert by_id[with_sub.id]["provider_subscriptions"]["plano"] == "basico"
        assert by_id[without.id]["provider_subscriptions"] is None

    async def test_create_provider_assigns_slug(self, db):
        result = await run_action(db, "create_provider", data={
            "name": "Reboque Rápido",
            "whatsapp": "11999990000",
            "service_types": ["guincho_completo"],
        })

        assert result["success"] is True
        assert result["provider"]["slug"] == "reboque-rapido"
        assert result["provider"]["base_price"] == 50

    async def test_create_provider_validates(self, db):
        with pytest.raises(ValidationError):
            await run_action(db, "create_provider", data={"name": "Sem Serviço", "whatsapp": "11999990000"})

    async def test_update_provider(self, db, make_provider):
        provider = await make_provider()

        result = await run_action(db, "update_provider", provider.id, {"name": "Guincho Novo", "region": "Zona Sul"})

        assert result["provider"]["name"] == "Guincho Novo"
        assert result["provider"]["region"] == "Zona Sul"
        assert result["provider"]["whatsapp"] == "(11) 98765-4321"

    @pytest.mark.parametrize("field", ["name", "whatsapp", "latitude"])
    async def test_update_provider_rejects_null_required_fields(self, db, make_provider, field):
        provider = await make_provider()

        with pytest.raises(ValidationError) as exc_info:
            await run_action(db, "update_provider", provider.id, {field: None})
        assert field in exc_info.value.message

    async def test_update_branding(self, db, make_provider):
        provider = await make_provider()

        result = await run_action(db, "update_branding", provider.id, {
            "company_name": "João Reboques",
            "primary_color": "#ff0000",
            "custom_domain": "GuinchoDoJoao.com.br",
        })

        assert result["customization"]["company_name"] == "João Reboques"
        assert result["customization"]["custom_domain"] == "guinchodojoao.com.br"

    async def test_branding_rejects_taken_domain(self, db, make_provider):
        owner = await make_provider(customization={"custom_domain": "guinchodojoao.com.br"})
        other = await make_provider(whatsapp="(21) 91234-5678")
        assert owner.id != other.id

        with pytest.raises(ValidationError) as exc_info:
            await run_action(db, "update_branding", other.id, {"custom_domain": "guinchodojoao.com.br"})
        assert "Domínio" in exc_info.value.message

    async def test_branding_rejects_bad_color(self, db, make_provider):
        provider = await make_provider()

        with pytest.raises(ValidationError):
            await run_action(db, "update_branding", provider.id, {"primary_color": "red"})

    async def test_generate_slugs(self, db, make_provider):
        await make_provider(name="Guincho do João")
        await make_provider(name="Guincho do João", whatsapp="(21) 91234-5678")
        await make_provider(name="Já Tem Slug", whatsapp="(31) 99999-0000", slug="ja-tem")

        result = await run_action(db, "generate_slugs")
        assert result["updated"] == 2

        providers = (await run_action(db, "list_providers"))["providers"]
        assert {p["slug"] for p in providers} == {"guincho-do-joao", "guincho-do-joao-1", "ja-tem"}

        again = await run_action(db, "generate_slugs")
        assert again["updated"] == 0

    async def test_toggle_online_and_list_locations(self, db, make_provider):
        provider = await make_provider()

        await run_action(db, "toggle_provider_online", data={"provider_id": provider.id, "is_online": True})

        locations = (await run_action(db, "list_locations"))["locations"]
        assert len(locations) == 1
        assert locations[0]["provider_id"] == provider.id
        assert locations[0]["is_online"] is True
        assert locations[0]["latitude"] == provider.latitude


# =============================================================================
# API TESTS
# =============================================================================

class TestAdminEndpoint:
    """Tests for POST /api/admin/providers"""

    async def test_wrong_password(self, client):
        response = await client.post("/api/admin/providers", json={
            "action": "list_providers", "admin_password": "wrong",
        })

        assert response.status_code == 401
        assert response.json() == {"error": "Acesso não autorizado"}

    async def test_missing_password(self, client):
        response = await client.post("/api/admin/providers", json={"action": "list_providers"})

        assert response.status_code == 401

    async def test_activate_plan(self, client, make_provider):
        provider = await make_provider()

        response = await client.post("/api/admin/providers", json={
            "action": "activate_plan",
            "provider_id": provider.id,
            "data": {"plano": "basico"},
            "admin_password": ADMIN_PASSWORD,
        })

        assert response.status_code == 200
        assert response.json()["limite_corridas"] == 50

    async def test_unknown_action(self, client):
        response = await client.post("/api/admin/providers", json={
            "action": "explode", "admin_password": ADMIN_PASSWORD,
        })

        assert response.status_code == 500
        assert response.json() == {"error": "Ação desconhecida: explode"}

    async def test_database_failure_shape(self, client):
        failure = OperationalError("UPDATE provider_subscriptions", {}, Exception("database is locked"))
        with patch("guincho.services.admin_service.run_action", AsyncMock(side_effect=failure)):
            response = await client.post("/api/admin/providers", json={
                "action": "reset_rides", "provider_id": "x", "admin_password": ADMIN_PASSWORD,
            })

        assert response.status_code == 500
        assert "database is locked" in response.json()["error"]
