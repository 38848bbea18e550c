"""Delivery persistence."""

from courier_hub.storage.base import DeliveryStore
from courier_hub.storage.memory import InMemoryDeliveryStore
from courier_hub.storage.postgres import PostgresDeliveryStore

__all__ = [
    "DeliveryStore",
    "InMemoryDeliveryStore",
    "PostgresDeliveryStore",
]
