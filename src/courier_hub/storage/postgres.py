"""Postgres-backed delivery store."""

import json
import logging
from datetime import datetime
from typing import Any

import asyncpg

from courier_hub.delivery.models import (
    CompanyFeatures,
    DeliveryCompany,
    DeliveryError,
    DeliveryEvent,
    DeliveryIntegration,
    OrderWithDelivery,
    ShippingLabel,
)
from courier_hub.delivery.status import DeliveryStatus, to_delivery_status
from courier_hub.storage.base import DeliveryStore

logger = logging.getLogger(__name__)

COMPANY_COLUMNS = "id, name, api_url, contact_email, contact_phone, features, is_active"

ORDER_COLUMNS = """
    id, client_id, product_id, quantity, total_price,
    customer_name, customer_email, customer_phone, customer_address,
    wilaya, commune, wilaya_id, commune_id,
    delivery_company_id, tracking_number, delivery_status,
    shipping_label_url, label_generated_at, cod_amount, courier_response,
    created_at, updated_at
"""

INTEGRATION_COLUMNS = """
    id, client_id, delivery_company_id,
    api_key_encrypted, api_secret_encrypted, webhook_secret_encrypted,
    account_number, merchant_id, is_enabled, configured_at, updated_at
"""

EVENT_COLUMNS = """
    id, order_id, client_id, delivery_company_id, tracking_number,
    event_type, event_status, description, location, courier_timestamp,
    webhook_payload, webhook_verified, created_at
"""


def _load_json(raw: Any) -> dict[str, Any] | None:
    """JSONB columns come back as str unless a codec is registered."""
    if raw is None:
        return None
    if isinstance(raw, str):
        return json.loads(raw) if raw else None
    return raw if isinstance(raw, dict) else None


def _dump_json(value: dict[str, Any] | None) -> str | None:
    return json.dumps(value, default=str) if value is not None else None


def _row_to_company(row: asyncpg.Record) -> DeliveryCompany:
    return DeliveryCompany(
        id=row["id"],
        name=row["name"],
        api_url=row["api_url"],
        contact_email=row["contact_email"],
        contact_phone=row["contact_phone"],
        features=CompanyFeatures(**(_load_json(row["features"]) or {})),
        is_active=row["is_active"],
    )


def _row_to_order(row: asyncpg.Record) -> OrderWithDelivery:
    data = dict(row)
    data["delivery_status"] = to_delivery_status(data.get("delivery_status"))
    data["courier_response"] = _load_json(data.get("courier_response"))
    if data.get("total_price") is not None:
        data["total_price"] = float(data["total_price"])
    if data.get("cod_amount") is not None:
        data["cod_amount"] = float(data["cod_amount"])
    return OrderWithDelivery(**data)


def _row_to_event(row: asyncpg.Record) -> DeliveryEvent:
    data = dict(row)
    data["event_type"] = to_delivery_status(data.get("event_type"))
    data["webhook_payload"] = _load_json(data.get("webhook_payload"))
    return DeliveryEvent(**data)


class PostgresDeliveryStore(DeliveryStore):
    """
    Delivery store over asyncpg.

    Schema lives in scripts/migrate_delivery_tables.sql; this class never
    creates tables.
    """

    def __init__(self, database_url: str) -> None:
        self._database_url = database_url
        self._pool: asyncpg.Pool | None = None

    async def connect(self) -> None:
        """Create the connection pool."""
        self._pool = await asyncpg.create_pool(
            self._database_url,
            min_size=1,
            max_size=5,
            command_timeout=10,
        )
        logger.info("PostgresDeliveryStore connected")

    async def close(self) -> None:
        """Close the connection pool."""
        if self._pool:
            await self._pool.close()
            self._pool = None
            logger.info("PostgresDeliveryStore disconnected")

    def _require_pool(self) -> asyncpg.Pool:
        if not self._pool:
            raise RuntimeError("PostgresDeliveryStore not connected. Call connect() first.")
        return self._pool

    # -------------------------------------------------------------------------
    # Companies
    # -------------------------------------------------------------------------

    async def get_company(self, company_id: int) -> DeliveryCompany | None:
        pool = self._require_pool()
        row = await pool.fetchrow(
            f"SELECT {COMPANY_COLUMNS} FROM delivery_companies WHERE id = $1",
            company_id,
        )
        return _row_to_company(row) if row else None

    async def get_company_by_name(self, name: str) -> DeliveryCompany | None:
        pool = self._require_pool()
        row = await pool.fetchrow(
            f"SELECT {COMPANY_COLUMNS} FROM delivery_companies WHERE lower(name) = lower($1)",
            name.strip(),
        )
        return _row_to_company(row) if row else None

    async def list_active_companies(self) -> list[DeliveryCompany]:
        pool = self._require_pool()
        rows = await pool.fetch(
            f"""
            SELECT {COMPANY_COLUMNS}
            FROM delivery_companies
            WHERE is_active = true
            ORDER BY lower(name)
            """
        )
        return [_row_to_company(r) for r in rows]

    async def upsert_company(self, company: DeliveryCompany) -> DeliveryCompany:
        pool = self._require_pool()
        await pool.execute(
            """
            INSERT INTO delivery_companies
                (id, name, api_url, contact_email, contact_phone, features, is_active)
            VALUES ($1, $2, $3, $4, $5, $6::jsonb, $7)
            ON CONFLICT (id)
            DO UPDATE SET
                name = EXCLUDED.name,
                api_url = EXCLUDED.api_url,
                contact_email = EXCLUDED.contact_email,
                contact_phone = EXCLUDED.contact_phone,
                features = EXCLUDED.features,
                is_active = EXCLUDED.is_active
            """,
            company.id,
            company.name,
            company.api_url,
            company.contact_email,
            company.contact_phone,
            _dump_json(company.features.model_dump()),
            company.is_active,
        )
        logger.info("Upserted delivery company %s (%s)", company.id, company.name)
        return company

    # -------------------------------------------------------------------------
    # Orders
    # -------------------------------------------------------------------------

    async def get_order(self, order_id: int, client_id: int) -> OrderWithDelivery | None:
        pool = self._require_pool()
        row = await pool.fetchrow(
            f"SELECT {ORDER_COLUMNS} FROM store_orders WHERE id = $1 AND client_id = $2",
            order_id,
            client_id,
        )
        return _row_to_order(row) if row else None

    async def find_order_by_tracking(self, tracking_number: str) -> OrderWithDelivery | None:
        pool = self._require_pool()
        row = await pool.fetchrow(
            f"""
            SELECT {ORDER_COLUMNS}
            FROM store_orders
            WHERE tracking_number = $1
            ORDER BY id DESC
            LIMIT 1
            """,
            tracking_number,
        )
        return _row_to_order(row) if row else None

    async def assign_order(
        self,
        order_id: int,
        client_id: int,
        company_id: int,
        cod_amount: float | None,
    ) -> bool:
        pool = self._require_pool()
        result = await pool.execute(
            """
            UPDATE store_orders
            SET delivery_company_id = $3,
                cod_amount = $4,
                updated_at = NOW()
            WHERE id = $1 AND client_id = $2
            """,
            order_id,
            client_id,
            company_id,
            cod_amount,
        )
        return result == "UPDATE 1"

    async def save_shipment(
        self,
        order_id: int,
        client_id: int,
        *,
        delivery_company_id: int,
        tracking_number: str,
        label_url: str | None,
        courier_response: dict[str, Any] | None,
        label_generated_at: datetime | None = None,
    ) -> None:
        pool = self._require_pool()
        await pool.execute(
            """
            UPDATE store_orders
            SET tracking_number = $3,
                shipping_label_url = $4,
                courier_response = $5::jsonb,
                label_generated_at = COALESCE($6, label_generated_at),
                delivery_company_id = $7,
                updated_at = NOW()
            WHERE id = $1 AND client_id = $2
            """,
            order_id,
            client_id,
            tracking_number,
            label_url,
            _dump_json(courier_response),
            label_generated_at,
            delivery_company_id,
        )

    async def update_delivery_status(
        self,
        order_id: int,
        expected: DeliveryStatus,
        status: DeliveryStatus,
    ) -> bool:
        pool = self._require_pool()
        result = await pool.execute(
            """
            UPDATE store_orders
            SET delivery_status = $3, updated_at = NOW()
            WHERE id = $1 AND delivery_status = $2
            """,
            order_id,
            expected.value,
            status.value,
        )
        return result == "UPDATE 1"

    # -------------------------------------------------------------------------
    # Integrations
    # -------------------------------------------------------------------------

    async def get_integration(
        self,
        client_id: int,
        company_id: int,
        enabled_only: bool = True,
    ) -> DeliveryIntegration | None:
        pool = self._require_pool()
        query = f"""
            SELECT {INTEGRATION_COLUMNS}
            FROM delivery_integrations
            WHERE client_id = $1 AND delivery_company_id = $2
        """
        if enabled_only:
            query += " AND is_enabled = true"
        row = await pool.fetchrow(query, client_id, company_id)
        return DeliveryIntegration(**dict(row)) if row else None

    async def upsert_integration(self, integration: DeliveryIntegration) -> DeliveryIntegration:
        pool = self._require_pool()
        row = await pool.fetchrow(
            f"""
            INSERT INTO delivery_integrations (
                client_id, delivery_company_id,
                api_key_encrypted, api_secret_encrypted, webhook_secret_encrypted,
                account_number, merchant_id, is_enabled, configured_at, updated_at
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, true, NOW(), NOW())
            ON CONFLICT (client_id, delivery_company_id)
            DO UPDATE SET
                api_key_encrypted = EXCLUDED.api_key_encrypted,
                api_secret_encrypted = EXCLUDED.api_secret_encrypted,
                webhook_secret_encrypted = EXCLUDED.webhook_secret_encrypted,
                account_number = EXCLUDED.account_number,
                merchant_id = EXCLUDED.merchant_id,
                is_enabled = true,
                updated_at = NOW()
            RETURNING {INTEGRATION_COLUMNS}
            """,
            integration.client_id,
            integration.delivery_company_id,
            integration.api_key_encrypted,
            integration.api_secret_encrypted,
            integration.webhook_secret_encrypted,
            integration.account_number,
            integration.merchant_id,
        )
        logger.info(
            "Upserted delivery integration for client %s, company %s",
            integration.client_id,
            integration.delivery_company_id,
        )
        return DeliveryIntegration(**dict(row))

    async def list_integrations(self, client_id: int) -> list[DeliveryIntegration]:
        pool = self._require_pool()
        rows = await pool.fetch(
            f"""
            SELECT {INTEGRATION_COLUMNS}
            FROM delivery_integrations
            WHERE client_id = $1
            ORDER BY delivery_company_id
            """,
            client_id,
        )
        return [DeliveryIntegration(**dict(r)) for r in rows]

    async def disable_integration(self, client_id: int, company_id: int) -> bool:
        pool = self._require_pool()
        result = await pool.execute(
            """
            UPDATE delivery_integrations
            SET is_enabled = false, updated_at = NOW()
            WHERE client_id = $1 AND delivery_company_id = $2 AND is_enabled = true
            """,
            client_id,
            company_id,
        )
        disabled = result == "UPDATE 1"
        if disabled:
            logger.info("Disabled delivery integration for client %s, company %s", client_id, company_id)
        return disabled

    # -------------------------------------------------------------------------
    # Labels, events, errors
    # -------------------------------------------------------------------------

    async def insert_label(self, label: ShippingLabel) -> ShippingLabel:
        pool = self._require_pool()
        label_id = await pool.fetchval(
            """
            INSERT INTO delivery_labels (
                order_id, client_id, delivery_company_id, tracking_number,
                label_url, label_format, generated_at, expires_at
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
            RETURNING id
            """,
            label.order_id,
            label.client_id,
            label.delivery_company_id,
            label.tracking_number,
            label.label_url,
            label.label_format,
            label.generated_at,
            label.expires_at,
        )
        return label.model_copy(update={"id": label_id})

    async def insert_event(self, event: DeliveryEvent) -> DeliveryEvent:
        pool = self._require_pool()
        event_id = await pool.fetchval(
            """
            INSERT INTO delivery_events (
                order_id, client_id, delivery_company_id, tracking_number,
                event_type, event_status, description, location, courier_timestamp,
                webhook_payload, webhook_verified, created_at
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10::jsonb, $11, $12)
            RETURNING id
            """,
            event.order_id,
            event.client_id,
            event.delivery_company_id,
            event.tracking_number,
            event.event_type.value,
            event.event_status,
            event.description,
            event.location,
            event.courier_timestamp,
            _dump_json(event.webhook_payload),
            event.webhook_verified,
            event.created_at,
        )
        return event.model_copy(update={"id": event_id})

    async def list_events(self, order_id: int) -> list[DeliveryEvent]:
        pool = self._require_pool()
        rows = await pool.fetch(
            f"""
            SELECT {EVENT_COLUMNS}
            FROM delivery_events
            WHERE order_id = $1
            ORDER BY created_at DESC, id DESC
            """,
            order_id,
        )
        return [_row_to_event(r) for r in rows]

    async def record_error(self, error: DeliveryError) -> None:
        pool = self._require_pool()
        await pool.execute(
            """
            INSERT INTO delivery_errors (
                client_id, order_id, delivery_company_id,
                error_type, error_message, request_id, created_at
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            """,
            error.client_id,
            error.order_id,
            error.delivery_company_id,
            error.error_type,
            error.error_message,
            error.request_id,
            error.created_at,
        )
