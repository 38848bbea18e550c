#!/usr/bin/env python
"""Insert or update the supported delivery companies in the delivery_companies table."""

import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from courier_hub.config import get_settings
from courier_hub.couriers.registry import ADAPTER_CLASSES, CourierProvider
from courier_hub.delivery.models import CompanyFeatures, DeliveryCompany
from courier_hub.storage.postgres import PostgresDeliveryStore


def catalogue() -> list[DeliveryCompany]:
    """One company per supported courier, ids in provider declaration order."""
    companies = []
    for company_id, provider in enumerate(CourierProvider, start=1):
        adapter_cls = ADAPTER_CLASSES[provider]
        companies.append(
            DeliveryCompany(
                id=company_id,
                name=adapter_cls.display_name,
                api_url=adapter_cls.default_base_url,
                features=CompanyFeatures(
                    supports_cod=True,
                    supports_tracking=True,
                    supports_labels=True,
                    supports_create_shipment=True,
                ),
            )
        )
    return companies


async def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the delivery company catalogue")
    parser.add_argument(
        "--only",
        nargs="*",
        choices=[p.value for p in CourierProvider],
        help="Seed only these providers",
    )
    args = parser.parse_args()

    companies = catalogue()
    if args.only:
        wanted = {ADAPTER_CLASSES[CourierProvider(p)].display_name for p in args.only}
        companies = [c for c in companies if c.name in wanted]

    settings = get_settings()
    store = PostgresDeliveryStore(database_url=settings.database_url)
    await store.connect()
    try:
        for company in companies:
            await store.upsert_company(company)
            print(f"Company {company.id} upserted ({company.name})")
    finally:
        await store.close()


if __name__ == "__main__":
    asyncio.run(main())
