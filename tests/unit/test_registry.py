"""Unit tests for the courier registry."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from courier_hub.config import Settings
from courier_hub.couriers.base import CourierService
from courier_hub.couriers.noest import NoestService
from courier_hub.couriers.registry import (
    ADAPTER_CLASSES,
    CourierProvider,
    CourierRegistry,
    alias_key,
    resolve_provider,
)
from courier_hub.couriers.yalidine import YalidineService


class TestResolveProvider:
    """Tests for company name resolution."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Yalidine", CourierProvider.YALIDINE),
            ("YALIDINE EXPRESS", CourierProvider.YALIDINE),
            ("ZR Express", CourierProvider.ZR_EXPRESS),
            ("zrexpress", CourierProvider.ZR_EXPRESS),
            ("Procolis", CourierProvider.ZR_EXPRESS_LEGACY),
            ("ZR Express (Procolis)", CourierProvider.ZR_EXPRESS_LEGACY),
            ("Algérie Poste", CourierProvider.ALGERIE_POSTE),
            ("algerie-poste", CourierProvider.ALGERIE_POSTE),
            ("Zimou Express", CourierProvider.ZIMOU_EXPRESS),
            ("mars_express", CourierProvider.MARS_EXPRESS),
            ("Anderson Ecommerce", CourierProvider.ANDERSON),
        ],
    )
    def test_known_names(self, name, expected):
        assert resolve_provider(name) == expected

    @pytest.mark.parametrize("name", [None, "", "DHL", "Fedex Algeria"])
    def test_unknown_names(self, name):
        assert resolve_provider(name) is None

    def test_alias_key(self):
        assert alias_key("Noest  Express!") == "noestexpress"

    def test_every_provider_has_an_adapter(self):
        """Test the adapter table covers the provider set exactly."""
        assert set(ADAPTER_CLASSES) == set(CourierProvider)
        for provider, adapter_cls in ADAPTER_CLASSES.items():
            assert adapter_cls.provider == provider.value
            assert issubclass(adapter_cls, CourierService)


class TestCourierRegistry:
    """Tests for adapter lookup and lifecycle."""

    def test_builds_every_adapter(self):
        registry = CourierRegistry()
        assert len(registry.providers) == len(CourierProvider)
        assert isinstance(registry.get(CourierProvider.YALIDINE), YalidineService)

    def test_for_company(self):
        registry = CourierRegistry()
        assert isinstance(registry.for_company("Noest Express"), NoestService)
        assert registry.for_company("Unknown Courier") is None
        assert registry.supports("Guepex")
        assert not registry.supports("Unknown Courier")

    def test_explicit_adapters_override(self):
        fake = MagicMock(spec=CourierService)
        registry = CourierRegistry(adapters={CourierProvider.YALIDINE: fake})
        assert registry.for_company("Yalidine") is fake
        assert isinstance(registry.get(CourierProvider.NOEST), NoestService)

    def test_from_settings(self):
        """Test adapters pick up timeouts and Noest defaults from settings."""
        settings = Settings(
            courier_http_timeout=3.5,
            noest_api_url="https://noest.test",
            noest_default_wilaya_id=31,
            territory_cache_ttl=60,
        )
        registry = CourierRegistry(settings)

        noest = registry.get(CourierProvider.NOEST)
        assert noest.api_url == "https://noest.test"
        assert noest.default_wilaya_id == 31
        assert noest.timeout == 3.5
        assert registry.get(CourierProvider.ZR_EXPRESS).territories.ttl_seconds == 60

    @pytest.mark.asyncio
    async def test_close_closes_adapters(self):
        fake = MagicMock(spec=CourierService)
        fake.close = AsyncMock()
        registry = CourierRegistry(adapters={CourierProvider.MAYSTRO: fake})

        await registry.close()

        fake.close.assert_awaited_once()
