"""Guepex courier service.

Guepex runs the same parcels platform as Yalidine; only the host, the
auth header names and the status vocabulary differ.
"""

from courier_hub.couriers.yalidine import YalidineService
from courier_hub.delivery.status import CourierStatus

GUEPEX_STATUS_TABLE: dict[str, CourierStatus] = {
    "En preparation": CourierStatus.PENDING,
    "Expediee": CourierStatus.IN_TRANSIT,
    "Au centre": CourierStatus.IN_TRANSIT,
    "En attente du client": CourierStatus.OUT_FOR_DELIVERY,
    "Sortie en livraison": CourierStatus.OUT_FOR_DELIVERY,
    "Livree": CourierStatus.DELIVERED,
    "Echec livraison": CourierStatus.FAILED,
    "Retournee": CourierStatus.RETURNED,
    "Prete au retrait": CourierStatus.READY_FOR_PICKUP,
}


class GuepexService(YalidineService):
    """Guepex parcels API (X-API-KEY / X-API-TOKEN auth)."""

    provider = "guepex"
    display_name = "Guepex"
    default_base_url = "https://api.guepex.app/v1"

    STATUS_TABLE = GUEPEX_STATUS_TABLE

    def _headers(self, api_key: str, secondary: str | None) -> dict[str, str]:
        return {
            "X-API-KEY": api_key,
            "X-API-TOKEN": secondary or api_key,
        }
