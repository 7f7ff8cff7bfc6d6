"""Tests for telephony webhook handling."""

import json
from unittest.mock import patch

import pytest
from sqlalchemy import func, select

from app.domain.exceptions import InvalidSignatureError
from app.domain.services.webhook_service import (
    WebhookService,
    WebhookStatus,
    compute_signature,
    verify_signature,
)
from app.persistence.models.call_record import CallRecord

SECRET = "webhook-test-secret"
CALL_LOG_EVENT = "/restapi/v1.0/account/~/extension/~/call-log"


def _call_log_payload(*records: dict) -> bytes:
    return json.dumps({"event": CALL_LOG_EVENT, "uuid": "evt-1", "body": {"records": list(records)}}).encode()


def _inbound_connected(call_id: str = "rc-in-1", from_number: str = "+1 (555) 123-4567") -> dict:
    return {
        "id": call_id,
        "direction": "Inbound",
        "result": "Call Connected",
        "duration": 125,
        "from": {"phoneNumber": from_number},
        "to": {"phoneNumber": "+15559990000"},
    }


async def _all_records(session) -> list[CallRecord]:
    return list((await session.execute(select(CallRecord))).scalars().all())


class TestVerifySignature:
    """Test cases for signature verification."""

    def test_valid_signature(self):
        body = b'{"event": "x"}'
        verify_signature(body, compute_signature(body, SECRET), SECRET)

    def test_signature_is_case_insensitive_hex(self):
        body = b'{"event": "x"}'
        verify_signature(body, compute_signature(body, SECRET).upper(), SECRET)

    def test_tampered_body_rejected(self):
        signature = compute_signature(b'{"amount": 1}', SECRET)
        with pytest.raises(InvalidSignatureError):
            verify_signature(b'{"amount": 2}', signature, SECRET)

    def test_missing_signature_rejected(self):
        with pytest.raises(InvalidSignatureError):
            verify_signature(b"{}", None, SECRET)

    def test_non_ascii_signature_rejected(self):
        with pytest.raises(InvalidSignatureError):
            verify_signature(b'{"event": "x"}', "\u00e9" * 64, SECRET)

    def test_no_secret_skips_outside_production(self):
        with patch("app.domain.services.webhook_service.settings") as mock_settings:
            mock_settings.is_production = False
            verify_signature(b"{}", None, None)

    def test_no_secret_fails_closed_in_production(self):
        with patch("app.domain.services.webhook_service.settings") as mock_settings:
            mock_settings.is_production = True
            with pytest.raises(InvalidSignatureError):
                verify_signature(b"{}", "anything", None)


class TestHandle:
    """Test cases for WebhookService.handle."""

    async def test_inbound_connected_creates_matched_completed_record(
        self, db_session, stages, make_contact, make_deal
    ):
        contact = await make_contact("555-123-4567")
        deal = await make_deal(contact, stages["Negotiation"], "Expansion")
        body = _call_log_payload(_inbound_connected())
        service = WebhookService(db_session, secret=SECRET)

        outcome = await service.handle(body, compute_signature(body, SECRET))

        assert outcome.status == WebhookStatus.PROCESSED
        assert outcome.processed == 1
        records = await _all_records(db_session)
        assert len(records) == 1
        record = records[0]
        assert record.status == "completed"
        assert record.direction == "inbound"
        assert record.from_number == "+15551234567"
        assert record.duration_seconds == 125
        assert record.matched_contact_id == contact.id
        assert record.matched_deal_id == deal.id

    async def test_tampered_body_rejected_without_writes(self, db_session):
        original = _call_log_payload(_inbound_connected())
        signature = compute_signature(original, SECRET)
        tampered = original.replace(b"125", b"999")
        service = WebhookService(db_session, secret=SECRET)

        outcome = await service.handle(tampered, signature)

        assert outcome.status == WebhookStatus.REJECTED
        assert not outcome.accepted
        count = (await db_session.execute(select(func.count(CallRecord.id)))).scalar_one()
        assert count == 0

    async def test_redelivery_updates_single_row(self, db_session):
        service = WebhookService(db_session, secret=SECRET)
        ringing = dict(_inbound_connected(), result="Ringing", duration=None)
        first = _call_log_payload(ringing)
        second = _call_log_payload(_inbound_connected())

        await service.handle(first, compute_signature(first, SECRET))
        await service.handle(second, compute_signature(second, SECRET))
        await service.handle(first, compute_signature(first, SECRET))

        records = await _all_records(db_session)
        assert len(records) == 1
        assert records[0].status == "completed"

    async def test_outbound_matches_on_to_number(self, db_session, make_contact):
        contact = await make_contact("555-222-3333")
        record = {
            "id": "rc-out-1",
            "direction": "Outbound",
            "result": "No Answer",
            "fromNumber": "+15559990000",
            "toNumber": "5552223333",
        }
        body = _call_log_payload(record)

        await WebhookService(db_session, secret=SECRET).handle(body, compute_signature(body, SECRET))

        stored = (await _all_records(db_session))[0]
        assert stored.status == "missed"
        assert stored.to_number == "+15552223333"
        assert stored.matched_contact_id == contact.id

    async def test_unmatched_number_still_recorded(self, db_session):
        body = _call_log_payload(_inbound_connected(from_number="+15550000000"))

        await WebhookService(db_session, secret=SECRET).handle(body, compute_signature(body, SECRET))

        stored = (await _all_records(db_session))[0]
        assert stored.matched_contact_id is None
        assert stored.matched_deal_id is None

    async def test_bad_record_does_not_block_others(self, db_session):
        body = _call_log_payload({"id": "bad", "duration": "forever"}, _inbound_connected("rc-good"))

        outcome = await WebhookService(db_session, secret=SECRET).handle(body, compute_signature(body, SECRET))

        assert outcome.processed == 1
        assert outcome.failed == 1
        assert [r.provider_call_id for r in await _all_records(db_session)] == ["rc-good"]

    async def test_other_events_ignored(self, db_session):
        body = json.dumps({"event": "/restapi/v1.0/account/~/extension/~/message-store", "body": {}}).encode()

        outcome = await WebhookService(db_session, secret=SECRET).handle(body, compute_signature(body, SECRET))

        assert outcome.status == WebhookStatus.IGNORED
        assert outcome.accepted

    @pytest.mark.parametrize(
        "body",
        [b"not json", b"[]", json.dumps({"event": CALL_LOG_EVENT, "body": {"records": "nope"}}).encode()],
    )
    async def test_invalid_payloads_acknowledged(self, db_session, body):
        outcome = await WebhookService(db_session, secret=SECRET).handle(body, compute_signature(body, SECRET))

        assert outcome.status == WebhookStatus.IGNORED
        assert outcome.accepted
