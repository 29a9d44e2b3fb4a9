# tests/test_metal_rates_service.py
"""
Metal Rates Service Tests - Stored Rate Updates and Audit Log

Files that USE this module:
- pytest (test runner executes these tests)

Files that this module USES:
- jewelrate.application.metal_rates_service (MetalRatesService)
"""
from decimal import Decimal

import pytest

from jewelrate.application.metal_rates_service import AUDIT_ACTION_UPDATE, MetalRatesService
from jewelrate.domain.errors import AuthorizationError, InvalidNumericInput, MetalNotFound, ValidationError


@pytest.fixture
def rates(store):
    return MetalRatesService(store)


class TestMetalRatesService:
    def test_superadmin_updates_rate(self, rates, store, superadmin):
        updated = rates.update_rate(superadmin, "Gold", "5600.50")

        assert updated.metal == "gold"
        assert updated.price_per_gram == Decimal("5600.50")
        assert updated.updated_by == superadmin.user_id
        assert store.get_metal_rate("gold").price_per_gram == Decimal("5600.50")

    def test_update_is_audit_logged(self, rates, store, superadmin):
        rates.update_rate(superadmin, "silver", 80)

        logs = store.list_audit_logs()
        assert len(logs) == 1
        assert logs[0]["action"] == AUDIT_ACTION_UPDATE
        assert logs[0]["admin_id"] == superadmin.user_id
        assert logs[0]["details"] == {"metal": "silver", "from": "75", "to": "80"}

    def test_admin_cannot_change_rates(self, rates, store, admin):
        with pytest.raises(AuthorizationError):
            rates.update_rate(admin, "gold", "1")
        assert store.get_metal_rate("gold").price_per_gram == Decimal("5500")
        assert store.list_audit_logs() == []

    def test_unknown_metal(self, rates, store, superadmin):
        with pytest.raises(MetalNotFound):
            rates.update_rate(superadmin, "palladium", "3100")
        assert store.list_audit_logs() == []

    @pytest.mark.parametrize("price", ["0", "-10"])
    def test_non_positive_price(self, rates, superadmin, price):
        with pytest.raises(ValidationError):
            rates.update_rate(superadmin, "gold", price)

    def test_missing_price(self, rates, superadmin):
        with pytest.raises(InvalidNumericInput):
            rates.update_rate(superadmin, "gold", None)

    def test_list_rates(self, rates, superadmin, admin):
        assert {r.metal for r in rates.list_rates(superadmin)} == {"gold", "silver", "platinum"}
        with pytest.raises(AuthorizationError):
            rates.list_rates(admin)


class TestSeeding:
    def test_seed_only_fills_missing_metals(self, store):
        added = store.seed_metal_rates({"gold": Decimal("14043"), "palladium": Decimal("3200")})

        assert added == 1
        assert store.get_metal_rate("gold").price_per_gram == Decimal("5500")
        assert store.get_metal_rate("palladium").price_per_gram == Decimal("3200")
