"""Tests for outbound call placement."""

import json
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from app.domain.exceptions import (
    CallFailedError,
    NotConnectedError,
    RefreshFailedError,
    UnauthorizedError,
)
from app.domain.services.call_service import CallService
from app.infrastructure.telephony.ringcentral_client import RING_OUT_PATH, TOKEN_PATH
from app.persistence.models.call_record import CallRecord


def _ring_out_ok(call_id: str = "ro-100") -> httpx.Response:
    return httpx.Response(200, json={"id": call_id, "status": {"callStatus": "InProgress"}})


class TestPlaceCall:
    """Test cases for CallService.place_call."""

    async def test_normalizes_numbers_and_records_initiated_call(
        self, db_session, user, make_identity, make_contact, fake_provider
    ):
        await make_identity()
        contact = await make_contact("(555) 123-4567")
        fake_provider.add("POST", RING_OUT_PATH, _ring_out_ok("ro-1"))
        service = CallService(db_session, client_factory=fake_provider.client_factory)

        result = await service.place_call(user.id, "5551234567", from_number="555-999-0000")

        assert result.to_number == "+15551234567"
        assert result.from_number == "+15559990000"
        assert result.provider_call_id == "ro-1"

        request = fake_provider.requests_to(RING_OUT_PATH)[0]
        assert request.headers["Authorization"] == "Bearer old-access"
        assert json.loads(request.content) == {
            "to": {"phoneNumber": "+15551234567"},
            "from": {"phoneNumber": "+15559990000"},
            "playPrompt": True,
        }

        record = (await db_session.execute(select(CallRecord))).scalar_one()
        assert record.id == result.call_record_id
        assert record.direction == "outbound"
        assert record.status == "initiated"
        assert record.to_number == "+15551234567"
        assert record.provider_call_id == "ro-1"
        assert record.matched_contact_id == contact.id
        assert record.user_id == user.id

    async def test_from_defaults_to_main_number(self, db_session, user, make_identity, fake_provider):
        await make_identity()
        fake_provider.add("POST", RING_OUT_PATH, _ring_out_ok())
        service = CallService(db_session, client_factory=fake_provider.client_factory)

        with patch("app.domain.services.call_service.settings") as mock_settings:
            mock_settings.ringcentral_main_number = "(555) 000-1111"
            mock_settings.telephony_retry_on_unauthorized = True
            result = await service.place_call(user.id, "555-123-4567")

        assert result.from_number == "+15550001111"

    async def test_missing_caller_number_fails(self, db_session, user, make_identity, fake_provider):
        await make_identity()
        service = CallService(db_session, client_factory=fake_provider.client_factory)

        with patch("app.domain.services.call_service.settings") as mock_settings:
            mock_settings.ringcentral_main_number = None
            with pytest.raises(CallFailedError) as exc_info:
                await service.place_call(user.id, "555-123-4567")

        assert exc_info.value.status_code is None
        assert fake_provider.requests == []

    @pytest.mark.parametrize("to_number", ["", "   ", "call me"])
    async def test_invalid_destination_raises_value_error(self, db_session, user, fake_provider, to_number):
        service = CallService(db_session, client_factory=fake_provider.client_factory)

        with pytest.raises(ValueError):
            await service.place_call(user.id, to_number, from_number="+15559990000")

    async def test_not_connected(self, db_session, user, fake_provider):
        service = CallService(db_session, client_factory=fake_provider.client_factory)

        with pytest.raises(NotConnectedError):
            await service.place_call(user.id, "5551234567", from_number="+15559990000")

    async def test_expired_token_refreshed_before_call(self, db_session, user, make_identity, fake_provider):
        await make_identity(expires_in=timedelta(minutes=-1))
        fake_provider.add_token_response("fresh-access")
        fake_provider.add("POST", RING_OUT_PATH, _ring_out_ok())
        service = CallService(db_session, client_factory=fake_provider.client_factory)

        await service.place_call(user.id, "5551234567", from_number="+15559990000")

        assert fake_provider.requests_to(RING_OUT_PATH)[0].headers["Authorization"] == "Bearer fresh-access"

    async def test_refresh_failure_propagates(self, db_session, user, make_identity, fake_provider):
        await make_identity(expires_in=timedelta(minutes=-1))
        fake_provider.add("POST", TOKEN_PATH, httpx.Response(400))
        service = CallService(db_session, client_factory=fake_provider.client_factory)

        with pytest.raises(RefreshFailedError):
            await service.place_call(user.id, "5551234567", from_number="+15559990000")

    async def test_provider_error_raises_call_failed_with_status(
        self, db_session, user, make_identity, fake_provider
    ):
        await make_identity()
        fake_provider.add("POST", RING_OUT_PATH, httpx.Response(400, json={"errorCode": "CMN-101"}))
        service = CallService(db_session, client_factory=fake_provider.client_factory)

        with pytest.raises(CallFailedError) as exc_info:
            await service.place_call(user.id, "5551234567", from_number="+15559990000")

        assert exc_info.value.status_code == 400

    async def test_timeout_raises_call_failed_without_status(
        self, db_session, user, make_identity, fake_provider
    ):
        await make_identity()
        fake_provider.add("POST", RING_OUT_PATH, httpx.ConnectTimeout("timed out"))
        service = CallService(db_session, client_factory=fake_provider.client_factory)

        with pytest.raises(CallFailedError) as exc_info:
            await service.place_call(user.id, "5551234567", from_number="+15559990000")

        assert exc_info.value.status_code is None


class TestUnauthorizedRetry:
    """Test cases for the single refresh-and-retry on 401."""

    async def test_401_refreshes_and_retries_once(self, db_session, user, make_identity, fake_provider):
        await make_identity()
        fake_provider.add("POST", RING_OUT_PATH, httpx.Response(401), _ring_out_ok("ro-retry"))
        fake_provider.add_token_response("rotated-access")
        service = CallService(db_session, client_factory=fake_provider.client_factory)

        result = await service.place_call(user.id, "5551234567", from_number="+15559990000")

        assert result.provider_call_id == "ro-retry"
        ring_outs = fake_provider.requests_to(RING_OUT_PATH)
        assert len(ring_outs) == 2
        assert ring_outs[1].headers["Authorization"] == "Bearer rotated-access"
        assert len(fake_provider.requests_to(TOKEN_PATH)) == 1

    async def test_second_401_raises_unauthorized(self, db_session, user, make_identity, fake_provider):
        await make_identity()
        fake_provider.add("POST", RING_OUT_PATH, httpx.Response(401))
        fake_provider.add_token_response("rotated-access")
        service = CallService(db_session, client_factory=fake_provider.client_factory)

        with pytest.raises(UnauthorizedError):
            await service.place_call(user.id, "5551234567", from_number="+15559990000")

        assert len(fake_provider.requests_to(RING_OUT_PATH)) == 2

    async def test_retry_disabled(self, db_session, user, make_identity, fake_provider):
        await make_identity()
        fake_provider.add("POST", RING_OUT_PATH, httpx.Response(401))
        service = CallService(db_session, client_factory=fake_provider.client_factory)

        with patch("app.domain.services.call_service.settings") as mock_settings:
            mock_settings.ringcentral_main_number = None
            mock_settings.telephony_retry_on_unauthorized = False
            with pytest.raises(UnauthorizedError):
                await service.place_call(user.id, "5551234567", from_number="+15559990000")

        assert fake_provider.requests_to(TOKEN_PATH) == []


class TestRecordingFailures:
    """Test cases for post-call bookkeeping."""

    async def test_reconcile_failure_does_not_fail_call(self, db_session, user, make_identity, fake_provider):
        await make_identity()
        fake_provider.add("POST", RING_OUT_PATH, _ring_out_ok("ro-7"))
        service = CallService(db_session, client_factory=fake_provider.client_factory)
        error = OperationalError("INSERT", {}, Exception("disk full"))

        with patch.object(service.call_log_service, "upsert", AsyncMock(side_effect=error)):
            result = await service.place_call(user.id, "5551234567", from_number="+15559990000")

        assert result.provider_call_id == "ro-7"
        assert result.call_record_id is None
