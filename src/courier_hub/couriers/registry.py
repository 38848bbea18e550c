"""Courier provider registry.

Maps the closed set of supported couriers to their adapter classes, and
delivery company names (as merchants and seed data spell them) to
providers.
"""

import logging
import re
from collections.abc import Mapping
from enum import Enum
from typing import TYPE_CHECKING

import httpx

from courier_hub.couriers.algerie_poste import AlgeriePosteService
from courier_hub.couriers.anderson import AndersonService
from courier_hub.couriers.base import CourierService
from courier_hub.couriers.dolivroo import DolivrooService
from courier_hub.couriers.ecotrack import EcotrackService
from courier_hub.couriers.guepex import GuepexService
from courier_hub.couriers.mars_express import MarsExpressService
from courier_hub.couriers.maystro import MaystroService
from courier_hub.couriers.noest import NoestService
from courier_hub.couriers.yalidine import YalidineService
from courier_hub.couriers.zimou_express import ZimouExpressService
from courier_hub.couriers.zr_express import ZRExpressLegacyService
from courier_hub.couriers.zrexpress import ZRExpressService
from courier_hub.delivery.status import normalize_status_key

if TYPE_CHECKING:
    from courier_hub.config import Settings

logger = logging.getLogger(__name__)


class CourierProvider(str, Enum):
    """Supported courier networks."""

    YALIDINE = "yalidine"
    ECOTRACK = "ecotrack"
    NOEST = "noest"
    GUEPEX = "guepex"
    MAYSTRO = "maystro"
    ZR_EXPRESS_LEGACY = "zr_express_legacy"
    ZR_EXPRESS = "zrexpress"
    DOLIVROO = "dolivroo"
    ZIMOU_EXPRESS = "zimou_express"
    ALGERIE_POSTE = "algerie_poste"
    ANDERSON = "anderson"
    MARS_EXPRESS = "mars_express"


ADAPTER_CLASSES: dict[CourierProvider, type[CourierService]] = {
    CourierProvider.YALIDINE: YalidineService,
    CourierProvider.ECOTRACK: EcotrackService,
    CourierProvider.NOEST: NoestService,
    CourierProvider.GUEPEX: GuepexService,
    CourierProvider.MAYSTRO: MaystroService,
    CourierProvider.ZR_EXPRESS_LEGACY: ZRExpressLegacyService,
    CourierProvider.ZR_EXPRESS: ZRExpressService,
    CourierProvider.DOLIVROO: DolivrooService,
    CourierProvider.ZIMOU_EXPRESS: ZimouExpressService,
    CourierProvider.ALGERIE_POSTE: AlgeriePosteService,
    CourierProvider.ANDERSON: AndersonService,
    CourierProvider.MARS_EXPRESS: MarsExpressService,
}


def _check_adapter_table() -> None:
    missing = [p.value for p in CourierProvider if p not in ADAPTER_CLASSES]
    if missing:
        raise RuntimeError(f"No courier adapter registered for: {', '.join(missing)}")
    mismatched = [p.value for p, cls in ADAPTER_CLASSES.items() if cls.provider != p.value]
    if mismatched:
        raise RuntimeError(f"Courier adapters registered under the wrong provider: {', '.join(mismatched)}")


_check_adapter_table()


def alias_key(name: str | None) -> str:
    """Normalize a company name: accents, case, spaces and punctuation are ignored."""
    return re.sub(r"[^a-z0-9]", "", normalize_status_key(name))


# Company names as they appear in delivery_companies and merchant input
_COMPANY_ALIASES: dict[str, CourierProvider] = {
    "Yalidine": CourierProvider.YALIDINE,
    "Yalidine Express": CourierProvider.YALIDINE,
    "Ecotrack": CourierProvider.ECOTRACK,
    "Noest": CourierProvider.NOEST,
    "Noest Express": CourierProvider.NOEST,
    "Guepex": CourierProvider.GUEPEX,
    "Maystro": CourierProvider.MAYSTRO,
    "Maystro Delivery": CourierProvider.MAYSTRO,
    "Procolis": CourierProvider.ZR_EXPRESS_LEGACY,
    "ZR Express Legacy": CourierProvider.ZR_EXPRESS_LEGACY,
    "ZR Express (Procolis)": CourierProvider.ZR_EXPRESS_LEGACY,
    "ZR Express": CourierProvider.ZR_EXPRESS,
    "ZR Express Official": CourierProvider.ZR_EXPRESS,
    "Dolivroo": CourierProvider.DOLIVROO,
    "Zimou": CourierProvider.ZIMOU_EXPRESS,
    "Zimou Express": CourierProvider.ZIMOU_EXPRESS,
    "Algérie Poste": CourierProvider.ALGERIE_POSTE,
    "Anderson": CourierProvider.ANDERSON,
    "Anderson Ecommerce": CourierProvider.ANDERSON,
    "Anderson Express": CourierProvider.ANDERSON,
    "Mars Express": CourierProvider.MARS_EXPRESS,
}

COMPANY_ALIASES: dict[str, CourierProvider] = {
    **{alias_key(p.value): p for p in CourierProvider},
    **{alias_key(name): p for name, p in _COMPANY_ALIASES.items()},
}


def resolve_provider(company_name: str | None) -> CourierProvider | None:
    """
    Resolve a delivery company name to a provider.

    Returns:
        The provider, or None when the name matches no supported courier.
    """
    if not company_name:
        return None
    return COMPANY_ALIASES.get(alias_key(company_name))


class CourierRegistry:
    """
    One adapter instance per provider, built once at startup.

    Adapters are shared across requests; their only mutable state is the
    HTTP client and the ZR Express territory cache.
    """

    def __init__(
        self,
        settings: "Settings | None" = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        adapters: Mapping[CourierProvider, CourierService] | None = None,
    ) -> None:
        """
        Initialize the registry.

        Args:
            settings: Application settings the adapters are configured from.
            transport: Optional httpx transport shared by every adapter.
            adapters: Explicit adapters, replacing the built ones per provider.
        """
        self._adapters: dict[CourierProvider, CourierService] = {}
        for provider, adapter_cls in ADAPTER_CLASSES.items():
            if adapters and provider in adapters:
                self._adapters[provider] = adapters[provider]
            elif settings is not None:
                self._adapters[provider] = adapter_cls.from_settings(settings, transport=transport)
            else:
                self._adapters[provider] = adapter_cls(transport=transport)

    def get(self, provider: CourierProvider) -> CourierService:
        return self._adapters[provider]

    def for_company(self, company_name: str | None) -> CourierService | None:
        """Adapter for a delivery company name, or None when unsupported."""
        provider = resolve_provider(company_name)
        if provider is None:
            logger.debug("No courier adapter for company %r", company_name)
            return None
        return self._adapters[provider]

    def supports(self, company_name: str | None) -> bool:
        return resolve_provider(company_name) is not None

    @property
    def providers(self) -> list[CourierProvider]:
        return list(self._adapters)

    async def close(self) -> None:
        """Close every adapter's HTTP client."""
        for adapter in self._adapters.values():
            await adapter.close()
