"""Unit tests for courier adapters, driven through httpx.MockTransport."""

import hashlib
import hmac
import json

import httpx
import pytest

from courier_hub.couriers.anderson import AndersonService
from courier_hub.couriers.base import ApiResponse, CourierService, read_api_response, split_name
from courier_hub.couriers.dolivroo import DolivrooService
from courier_hub.couriers.ecotrack import EcotrackService
from courier_hub.couriers.mars_express import MarsExpressService
from courier_hub.couriers.noest import MISSING_GUID_ERROR, NoestService
from courier_hub.couriers.yalidine import YalidineService
from courier_hub.couriers.zimou_express import ZimouExpressService, kg_to_grams
from courier_hub.couriers.zrexpress import (
    CANCEL_NOT_SUPPORTED,
    MISSING_TENANT_ERROR,
    TerritoryCache,
    ZRExpressService,
    to_international_phone,
)
from courier_hub.delivery.models import ShipmentRequest
from courier_hub.delivery.status import CourierStatus, DeliveryStatus
from courier_hub.exceptions import WebhookPayloadError


class Recorder:
    """Collects requests and answers them from a handler."""

    def __init__(self, handler):
        self.handler = handler
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def bodies(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests if r.content]


def _refuse(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"Unexpected HTTP call to {request.url}")


class TestApiResponse:
    """Tests for defensive response reading."""

    def test_json_body(self):
        response = read_api_response(httpx.Response(200, json={"tracking": "T1"}))
        assert response.ok
        assert response.data == {"tracking": "T1"}

    def test_html_body(self):
        response = read_api_response(
            httpx.Response(502, text="<html>Bad Gateway</html>", headers={"content-type": "text/html"})
        )
        assert not response.ok
        assert response.json is None
        assert response.error_message() == "API Error 502 (text/html): <html>Bad Gateway</html>"

    def test_json_without_content_type(self):
        """Test JSON served as text/plain is still parsed."""
        response = read_api_response(httpx.Response(200, text='{"ok": true}'))
        assert response.data == {"ok": True}

    def test_courier_message_preferred(self):
        response = ApiResponse(status_code=400, content_type="application/json", text="", json={"message": "Bad wilaya"})
        assert response.error_message() == "Bad wilaya"

    def test_error_snippet_truncated(self):
        response = ApiResponse(status_code=500, content_type="text/plain", text="x" * 1000)
        assert len(response.error_message()) < 500

    def test_split_name(self):
        assert split_name("Amina Benali Kaci") == ("Amina", "Benali Kaci")
        assert split_name("  ") == ("Customer", "")


class TestCommuneCandidates:
    """Tests for commune fallback candidates."""

    def test_order_and_dedup(self, sample_shipment):
        adapter = EcotrackService()
        assert adapter.commune_candidates(sample_shipment) == ["Bab Ezzouar", 1605, "Alger Centre"]

    def test_name_and_id_kept_separately(self):
        shipment = ShipmentRequest(
            customer_name="A",
            customer_phone="1",
            delivery_address="x",
            commune="16",
            commune_id=16,
            reference_id="ORDER-1",
        )
        assert EcotrackService().commune_candidates(shipment, "16") == ["16", 16]


class TestYalidine:
    """Tests for the Yalidine adapter."""

    @pytest.mark.asyncio
    async def test_create_shipment(self, sample_shipment):
        """Test parcel creation maps the request and reads the tracking number."""
        recorder = Recorder(
            lambda request: httpx.Response(
                200, json={"tracking": "YAL-123", "pdf_label": "https://yalidine.app/label/YAL-123.pdf"}
            )
        )
        adapter = YalidineService(transport=recorder.transport)

        result = await adapter.create_shipment(sample_shipment, "token", "api-id")

        assert result.success
        assert result.tracking_number == "YAL-123"
        assert result.label_url.endswith("YAL-123.pdf")

        request = recorder.requests[0]
        assert request.url.path == "/v1/parcels/"
        assert request.headers["X-API-ID"] == "api-id"
        assert request.headers["X-API-TOKEN"] == "token"
        body = recorder.bodies()[0]
        assert body["firstname"] == "Amina"
        assert body["familyname"] == "Benali"
        assert body["to_commune_name"] == "Bab Ezzouar"
        assert body["price"] == 4500
        assert body["freeshipping"] is False
        await adapter.close()

    @pytest.mark.asyncio
    async def test_api_id_falls_back_to_key(self, sample_shipment):
        recorder = Recorder(lambda request: httpx.Response(200, json={"tracking": "YAL-1"}))
        adapter = YalidineService(transport=recorder.transport)

        await adapter.create_shipment(sample_shipment, "token")

        assert recorder.requests[0].headers["X-API-ID"] == "token"

    @pytest.mark.asyncio
    async def test_rejection_returns_error(self, sample_shipment):
        """Test a 4xx becomes an unsuccessful result, not an exception."""
        recorder = Recorder(lambda request: httpx.Response(422, json={"message": "Commune inconnue"}))
        adapter = YalidineService(transport=recorder.transport)

        result = await adapter.create_shipment(sample_shipment, "token", "id")

        assert not result.success
        assert result.error == "Commune inconnue"

    @pytest.mark.asyncio
    async def test_missing_tracking(self, sample_shipment):
        recorder = Recorder(lambda request: httpx.Response(200, json={"order_id": "ORDER-42"}))
        adapter = YalidineService(transport=recorder.transport)

        result = await adapter.create_shipment(sample_shipment, "token", "id")

        assert not result.success
        assert "no tracking" in result.error

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self, sample_shipment):
        """Test network failures are left to the caller."""

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        adapter = YalidineService(transport=httpx.MockTransport(handler))
        with pytest.raises(httpx.ConnectError):
            await adapter.create_shipment(sample_shipment, "token", "id")

    @pytest.mark.asyncio
    async def test_get_status(self):
        recorder = Recorder(
            lambda request: httpx.Response(200, json={"status": "Prête au retrait", "to_wilaya_name": "Alger"})
        )
        adapter = YalidineService(transport=recorder.transport)

        result = await adapter.get_status("YAL-123", "token", "id")

        assert recorder.requests[0].url.path == "/v1/parcels/YAL-123"
        assert result.courier_status == CourierStatus.READY_FOR_PICKUP
        assert result.status == DeliveryStatus.OUT_FOR_DELIVERY
        assert result.location == "Alger"
        assert result.error is None

    @pytest.mark.asyncio
    async def test_get_status_failure(self):
        recorder = Recorder(lambda request: httpx.Response(404, text="Not found"))
        adapter = YalidineService(transport=recorder.transport)

        result = await adapter.get_status("YAL-404", "token", "id")

        assert result.error.startswith("Failed to fetch status: HTTP 404")
        assert result.status == DeliveryStatus.PENDING

    def test_parse_webhook(self):
        adapter = YalidineService()
        event = adapter.parse_webhook_payload(
            b'{"tracking": "YAL-9", "status": "Livr\\u00e9e", "to_wilaya_name": "Oran"}'
        )
        assert event.tracking_number == "YAL-9"
        assert event.event_type == DeliveryStatus.DELIVERED
        assert event.location == "Oran"

    def test_parse_webhook_numeric_tracking(self):
        event = YalidineService().parse_webhook_payload({"tracking": 12345, "status": "Expediee"})
        assert event.tracking_number == "12345"
        assert event.event_type == DeliveryStatus.IN_TRANSIT

    @pytest.mark.parametrize(
        "payload",
        [b"not json", b"[1, 2]", {"status": "Livree"}, {"tracking": "", "status": "Livree"}],
    )
    def test_parse_webhook_rejects(self, payload):
        """Test malformed bodies and missing tracking numbers are rejected."""
        with pytest.raises(WebhookPayloadError):
            YalidineService().parse_webhook_payload(payload)


class TestNoest:
    """Tests for the Noest adapter."""

    @staticmethod
    def _handler(create_responses, validation=None):
        responses = iter(create_responses)

        def handler(request):
            if request.url.path == "/api/public/create/order":
                return next(responses)
            if request.url.path == "/api/public/validation/order":
                return validation or httpx.Response(200, json={"success": True})
            raise AssertionError(f"Unexpected path {request.url.path}")

        return handler

    @pytest.mark.asyncio
    async def test_missing_guid(self, sample_shipment):
        """Test the user guid is required before any call is made."""
        adapter = NoestService(transport=httpx.MockTransport(_refuse))
        result = await adapter.create_shipment(sample_shipment, "token")
        assert not result.success
        assert result.error == MISSING_GUID_ERROR

    @pytest.mark.asyncio
    async def test_create_and_validate(self, sample_shipment):
        """Test an order is created then validated."""
        recorder = Recorder(
            self._handler([httpx.Response(200, json={"success": True, "tracking": "NOE-1"})])
        )
        adapter = NoestService(transport=recorder.transport)

        result = await adapter.create_shipment(sample_shipment, "token", "guid-1")

        assert result.success
        assert result.tracking_number == "NOE-1"
        create_body, validate_body = recorder.bodies()
        assert create_body["api_token"] == "token"
        assert create_body["user_guid"] == "guid-1"
        assert create_body["phone"] == "0555123456"
        assert create_body["poids"] == 2
        assert create_body["wilaya_id"] == 16
        assert create_body["commune"] == "Bab Ezzouar"
        assert validate_body == {"api_token": "token", "user_guid": "guid-1", "tracking": "NOE-1"}

    @pytest.mark.asyncio
    async def test_commune_fallback(self, sample_shipment):
        """Test a commune rejection retries with the next candidate."""
        recorder = Recorder(
            self._handler([
                httpx.Response(422, json={"errors": {"commune": ["The selected commune is invalid."]}}),
                httpx.Response(200, json={"success": True, "tracking": "NOE-2"}),
            ])
        )
        adapter = NoestService(transport=recorder.transport)

        result = await adapter.create_shipment(sample_shipment, "token", "guid-1")

        assert result.success
        communes = [b["commune"] for b in recorder.bodies() if "commune" in b]
        assert communes == ["Bab Ezzouar", 1605]

    @pytest.mark.asyncio
    async def test_other_errors_do_not_fall_back(self, sample_shipment):
        recorder = Recorder(
            self._handler([httpx.Response(422, json={"message": "Invalid phone", "errors": {"phone": ["bad"]}})])
        )
        adapter = NoestService(transport=recorder.transport)

        result = await adapter.create_shipment(sample_shipment, "token", "guid-1")

        assert not result.success
        assert result.error == "Invalid phone"
        assert len(recorder.requests) == 1

    @pytest.mark.asyncio
    async def test_all_communes_rejected(self, sample_shipment):
        recorder = Recorder(
            lambda request: httpx.Response(422, json={"message": "Commune invalide", "errors": {"commune": ["invalid"]}})
        )
        adapter = NoestService(transport=recorder.transport)

        result = await adapter.create_shipment(sample_shipment, "token", "guid-1")

        assert not result.success
        assert len(recorder.requests) == 3

    @pytest.mark.asyncio
    async def test_validation_failure(self, sample_shipment):
        """Test a created but unvalidated order is reported as a failure."""
        recorder = Recorder(
            self._handler(
                [httpx.Response(200, json={"success": True, "tracking": "NOE-3"})],
                validation=httpx.Response(200, json={"success": False, "message": "Solde insuffisant"}),
            )
        )
        adapter = NoestService(transport=recorder.transport)

        result = await adapter.create_shipment(sample_shipment, "token", "guid-1")

        assert not result.success
        assert result.error == "Solde insuffisant"

    @pytest.mark.asyncio
    async def test_get_status(self):
        recorder = Recorder(
            lambda request: httpx.Response(200, json={"data": {"NOE-1": {"OrderInfo": {"status": "Livré"}}}})
        )
        adapter = NoestService(transport=recorder.transport)

        result = await adapter.get_status("NOE-1", "token", "guid-1")

        assert result.status == DeliveryStatus.DELIVERED
        assert recorder.bodies()[0]["trackings"] == ["NOE-1"]

    @pytest.mark.asyncio
    async def test_get_status_unknown_tracking(self):
        recorder = Recorder(lambda request: httpx.Response(200, json={"data": {}}))
        adapter = NoestService(transport=recorder.transport)

        result = await adapter.get_status("NOE-X", "token", "guid-1")

        assert result.error == "Tracking not found"

    @pytest.mark.asyncio
    async def test_label_pdf(self):
        recorder = Recorder(
            lambda request: httpx.Response(
                200, content=b"%PDF-1.4 label", headers={"content-type": "application/pdf"}
            )
        )
        adapter = NoestService(transport=recorder.transport)

        result = await adapter.get_label_pdf("NOE-1", "token", "guid-1")

        assert result.success
        assert result.pdf.startswith(b"%PDF")
        assert recorder.requests[0].url.params["tracking"] == "NOE-1"

    @pytest.mark.asyncio
    async def test_label_not_pdf(self):
        """Test an HTML login page is not accepted as a label."""
        recorder = Recorder(
            lambda request: httpx.Response(200, text="<html>login</html>", headers={"content-type": "text/html"})
        )
        adapter = NoestService(transport=recorder.transport)

        result = await adapter.get_label_pdf("NOE-1", "token", "guid-1")

        assert not result.success
        assert "non-PDF" in result.error

    def test_webhooks_never_verify(self):
        assert NoestService().verify_webhook(b"{}", "sig", "secret") is False

    @pytest.mark.parametrize("weight,expected", [(None, 1), (0.3, 1), (1.0, 1), (1.2, 2), (3.0, 3)])
    def test_round_weight(self, weight, expected):
        assert NoestService.round_weight(weight) == expected

    def test_wilaya_id_from_numeric_name(self):
        shipment = ShipmentRequest(
            customer_name="A", customer_phone="1", delivery_address="x", wilaya="31", reference_id="R"
        )
        assert NoestService().resolve_wilaya_id(shipment) == 31


class TestZRExpress:
    """Tests for the official ZR Express adapter."""

    TERRITORIES = {
        "items": [
            {"id": "w-16", "level": "wilaya", "name": "Alger"},
            {"id": "w-31", "level": "wilaya", "name": "Oran"},
            {"id": "c-1", "level": "commune", "parentId": "w-16", "name": "Bab Ezzouar"},
            {"id": "c-2", "level": "commune", "parentId": "w-31", "name": "Bab Ezzouar"},
        ]
    }

    def _handler(self, request):
        if request.url.path.endswith("/territories/search"):
            return httpx.Response(200, json=self.TERRITORIES)
        if request.url.path.endswith("/parcels"):
            return httpx.Response(201, json={"id": "p-1", "trackingNumber": "ZR-100"})
        if request.url.path.endswith("/parcels/search"):
            return httpx.Response(
                200, json={"items": [{"trackingNumber": "ZR-100", "state": {"name": "en_livraison"}}]}
            )
        raise AssertionError(f"Unexpected path {request.url.path}")

    @pytest.mark.asyncio
    async def test_missing_tenant(self, sample_shipment):
        adapter = ZRExpressService(transport=httpx.MockTransport(_refuse))
        result = await adapter.create_shipment(sample_shipment, "key")
        assert result.error == MISSING_TENANT_ERROR

    @pytest.mark.asyncio
    async def test_create_resolves_territories(self, sample_shipment):
        """Test the commune is matched within its wilaya."""
        recorder = Recorder(self._handler)
        adapter = ZRExpressService(transport=recorder.transport)

        result = await adapter.create_shipment(sample_shipment, "key", "tenant-1")

        assert result.success
        assert result.tracking_number == "ZR-100"
        parcel = recorder.bodies()[-1]
        assert parcel["deliveryAddress"]["cityTerritoryId"] == "w-16"
        assert parcel["deliveryAddress"]["districtTerritoryId"] == "c-1"
        assert parcel["customer"]["phone"]["number1"] == "+213555123456"
        assert recorder.requests[-1].headers["X-Tenant"] == "tenant-1"
        assert recorder.requests[-1].headers["X-Api-Key"] == "key"

    @pytest.mark.asyncio
    async def test_territories_cached(self, sample_shipment):
        recorder = Recorder(self._handler)
        adapter = ZRExpressService(transport=recorder.transport)

        await adapter.create_shipment(sample_shipment, "key", "tenant-1")
        await adapter.create_shipment(sample_shipment, "key", "tenant-1")

        searches = [r for r in recorder.requests if r.url.path.endswith("/territories/search")]
        assert len(searches) == 1

    @pytest.mark.asyncio
    async def test_unknown_territory(self, sample_shipment):
        recorder = Recorder(self._handler)
        adapter = ZRExpressService(transport=recorder.transport)
        shipment = sample_shipment.model_copy(update={"wilaya": "Tamanrasset"})

        result = await adapter.create_shipment(shipment, "key", "tenant-1")

        assert not result.success
        assert "Tamanrasset" in result.error

    @pytest.mark.asyncio
    async def test_get_status(self):
        recorder = Recorder(self._handler)
        adapter = ZRExpressService(transport=recorder.transport)

        result = await adapter.get_status("ZR-100", "key", "tenant-1")

        assert result.status == DeliveryStatus.OUT_FOR_DELIVERY

    @pytest.mark.asyncio
    async def test_cancel_not_supported(self):
        result = await ZRExpressService().cancel_shipment("ZR-100", "key", "tenant-1")
        assert not result.success
        assert result.error == CANCEL_NOT_SUPPORTED

    def test_parse_svix_webhook(self):
        payload = {
            "type": "parcel.state.updated",
            "timestamp": "2026-01-05T10:00:00Z",
            "data": {"trackingNumber": "ZR-100", "state": {"name": "livre"}},
        }
        event = ZRExpressService().parse_webhook_payload(payload)
        assert event.tracking_number == "ZR-100"
        assert event.event_type == DeliveryStatus.DELIVERED

    def test_territory_cache_expires(self):
        now = [0.0]
        cache = TerritoryCache(ttl_seconds=10, clock=lambda: now[0])
        cache.store([{"id": 1}])
        assert cache.get() == [{"id": 1}]
        now[0] = 10.0
        assert cache.get() is None

    @pytest.mark.parametrize(
        "phone,expected",
        [
            ("0555 12 34 56", "+213555123456"),
            ("00213555123456", "+213555123456"),
            ("213555123456", "+213555123456"),
            ("+213555123456", "+213555123456"),
            ("555123456", "+213555123456"),
            ("", ""),
        ],
    )
    def test_international_phone(self, phone, expected):
        assert to_international_phone(phone) == expected


class TestOtherAdapters:
    """Tests for the remaining adapters' request and response handling."""

    @pytest.mark.asyncio
    async def test_zimou_non_json_response(self, sample_shipment):
        recorder = Recorder(
            lambda request: httpx.Response(502, text="<html>Bad Gateway</html>", headers={"content-type": "text/html"})
        )
        adapter = ZimouExpressService(transport=recorder.transport)

        result = await adapter.create_shipment(sample_shipment, "token")

        assert not result.success
        assert result.error == "Invalid response from server (HTTP 502): <html>Bad Gateway</html>"

    @pytest.mark.asyncio
    async def test_zimou_create(self, sample_shipment):
        recorder = Recorder(lambda request: httpx.Response(200, json={"data": {"tracking_code": "ZIM-7"}}))
        adapter = ZimouExpressService(transport=recorder.transport)

        result = await adapter.create_shipment(sample_shipment, "token")

        assert result.tracking_number == "ZIM-7"
        assert recorder.bodies()[0]["weight"] == 1200
        assert recorder.requests[0].headers["Authorization"] == "Bearer token"

    def test_kg_to_grams(self):
        assert kg_to_grams(None) == 1000
        assert kg_to_grams(0.25) == 250

    @pytest.mark.asyncio
    async def test_ecotrack_create_and_status(self, sample_shipment):
        def handler(request):
            if request.method == "POST":
                return httpx.Response(200, json={"tracking_code": "ECO-5", "label_url": "https://eco/label.pdf"})
            return httpx.Response(200, json={"status": "at_hub", "wilaya": "Alger"})

        recorder = Recorder(handler)
        adapter = EcotrackService(transport=recorder.transport)

        created = await adapter.create_shipment(sample_shipment, "token", "acct-9")
        status = await adapter.get_status("ECO-5", "token", "acct-9")

        assert created.tracking_number == "ECO-5"
        assert recorder.requests[0].headers["X-Account-ID"] == "acct-9"
        assert status.status == DeliveryStatus.IN_TRANSIT

    @pytest.mark.asyncio
    async def test_anderson_commune_fallback_and_cancel(self, sample_shipment):
        responses = iter([
            httpx.Response(422, json={"errors": {"commune": ["invalid"]}}),
            httpx.Response(200, json={"tracking_code": "AND-1"}),
            httpx.Response(200, json={"success": True}),
        ])
        recorder = Recorder(lambda request: next(responses))
        adapter = AndersonService(transport=recorder.transport)

        created = await adapter.create_shipment(sample_shipment, "token")
        cancelled = await adapter.cancel_shipment("AND-1", "token")

        assert created.tracking_number == "AND-1"
        assert cancelled.success
        assert recorder.requests[-1].url.path.endswith("/orders/AND-1/cancel")

    @pytest.mark.asyncio
    async def test_anderson_cancel_rejected(self):
        recorder = Recorder(lambda request: httpx.Response(409, json={"message": "Already shipped"}))
        adapter = AndersonService(transport=recorder.transport)

        result = await adapter.cancel_shipment("AND-1", "token")

        assert not result.success
        assert result.error == "Already shipped"

    @pytest.mark.asyncio
    async def test_dolivroo_default_provider(self, sample_shipment):
        recorder = Recorder(lambda request: httpx.Response(200, json={"tracking_number": "DOL-1"}))
        adapter = DolivrooService(transport=recorder.transport)

        result = await adapter.create_shipment(sample_shipment, "key", "secret")

        assert result.tracking_number == "DOL-1"
        assert recorder.bodies()[0]["provider"] == "auto"
        assert recorder.requests[0].headers["X-SECRET-KEY"] == "secret"

    @pytest.mark.asyncio
    async def test_mars_create(self, sample_shipment):
        recorder = Recorder(
            lambda request: httpx.Response(200, json={"shipment_number": "MRS-1", "label_url": "https://m/l.pdf"})
        )
        adapter = MarsExpressService(transport=recorder.transport)

        result = await adapter.create_shipment(sample_shipment, "token")

        assert result.tracking_number == "MRS-1"
        assert recorder.requests[0].url.path == "/v2/shipments/create"
        assert adapter.map_status("created") == DeliveryStatus.ASSIGNED

    @pytest.mark.asyncio
    async def test_cancel_unsupported_by_default(self):
        result = await YalidineService().cancel_shipment("YAL-1", "token")
        assert not result.success
        assert "not supported" in result.error

    def test_default_webhook_verification_is_hex(self):
        body = b'{"tracking":"YAL-1"}'
        signature = hmac.new(b"secret", body, hashlib.sha256).hexdigest()
        adapter: CourierService = YalidineService()
        assert adapter.verify_webhook(body, signature, "secret")
        assert not adapter.verify_webhook(body, signature, "other")
