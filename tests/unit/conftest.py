"""Fixtures shared by orchestrator, bulk and route tests."""

import pytest
import pytest_asyncio

from courier_hub.couriers.registry import CourierProvider, CourierRegistry
from courier_hub.delivery.orchestrator import DeliveryOrchestrator
from courier_hub.storage.memory import InMemoryDeliveryStore
from fakes import COMPANIES, FakeCourier


@pytest.fixture
def fake_courier() -> FakeCourier:
    return FakeCourier()


@pytest.fixture
def store(sample_order) -> InMemoryDeliveryStore:
    """Store holding orders 42 and 43 for client 7, and order 99 for client 8."""
    store = InMemoryDeliveryStore()
    store.add_order(sample_order)
    store.add_order(sample_order.model_copy(update={"id": 43}))
    store.add_order(sample_order.model_copy(update={"id": 99, "client_id": 8}))
    return store


@pytest_asyncio.fixture
async def orchestrator(store, vault, fake_courier) -> DeliveryOrchestrator:
    """Orchestrator over an in-memory store with a seeded company catalogue."""
    for company in COMPANIES:
        await store.upsert_company(company)
    registry = CourierRegistry(adapters={CourierProvider.YALIDINE: fake_courier})
    return DeliveryOrchestrator(store, vault, registry)
