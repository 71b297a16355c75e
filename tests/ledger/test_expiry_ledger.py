"""Tests for ExpiryLedger: extension maths, cap, fan-out, revival, idempotency and atomicity."""
from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy import update
from sqlalchemy.exc import OperationalError

from sitelease.core.errors import NotFound, StoreFailure, ValidationFailure
from sitelease.core.policy import DonationPolicy
from sitelease.models.account import Account
from sitelease.models.deployment import Deployment
from sitelease.models.processed_webhook_event import ProcessedWebhookEvent
from sitelease.services.ledger.service import ExpiryLedger
from sitelease.utils.clock import as_utc


@pytest.fixture()
def ledger(db):
    return ExpiryLedger(db, DonationPolicy())


def _account(db, fingerprint="abc") -> Account:
    db.expire_all()
    return db.query(Account).filter(Account.fingerprint == fingerprint).one()


class TestExtensionDays:
    @pytest.mark.parametrize(
        "amount,days",
        [
            (Decimal("4.99"), 0),
            (Decimal("5"), 30),
            (Decimal("9.99"), 30),
            (Decimal("10"), 60),
            (Decimal("27.50"), 150),
            (Decimal("100"), 600),
        ],
    )
    def test_whole_units_only(self, amount, days):
        assert DonationPolicy().extension_days(amount) == days

    def test_custom_unit(self):
        policy = DonationPolicy(unit_amount=Decimal("3"), unit_days=7)
        assert policy.extension_days(Decimal("10")) == 21

    def test_amount_beyond_default_precision(self):
        assert DonationPolicy().extension_days(Decimal("1e30")) == 6 * 10**30


class TestComputeNewExpiry:
    def test_adds_days_to_current_expiry(self, ledger, now):
        current = now + timedelta(days=10)
        assert ledger.compute_new_expiry(current, 60, now) == now + timedelta(days=70)

    def test_cap_measured_from_now(self, ledger, now):
        current = now + timedelta(days=170)
        assert ledger.compute_new_expiry(current, 60, now) == now + timedelta(days=180)

    def test_past_expiry_extends_from_the_past(self, ledger, now):
        current = now - timedelta(days=40)
        assert ledger.compute_new_expiry(current, 30, now) == now - timedelta(days=10)

    def test_extension_past_datetime_range_is_capped(self, ledger, now):
        assert ledger.compute_new_expiry(now, 10**12, now) == now + timedelta(days=180)

    def test_expiry_already_beyond_cap_is_pulled_back(self, ledger, now):
        current = now + timedelta(days=400)
        assert ledger.compute_new_expiry(current, 30, now) == now + timedelta(days=180)


class TestApplyDonation:
    def test_ten_dollars_buys_sixty_days(self, db, ledger, make_account, now):
        make_account("abc", expiry=now + timedelta(days=10))

        result = ledger.apply_donation("abc", Decimal("10"), event_id="bmac:1", now=now)

        assert result.extended_days == 60
        assert result.new_expiry == now + timedelta(days=70)
        assert result.duplicate is False
        assert as_utc(_account(db).expiry) == now + timedelta(days=70)

    def test_capped_at_one_hundred_eighty_days(self, db, ledger, make_account, now):
        make_account("abc", expiry=now + timedelta(days=170))

        result = ledger.apply_donation("abc", Decimal("10"), now=now)

        assert result.extended_days == 60
        assert result.new_expiry == now + timedelta(days=180)

    def test_donation_status_accumulates(self, db, ledger, make_account, now):
        make_account("abc", expiry=now)

        ledger.apply_donation("abc", Decimal("5"), event_id="bmac:1", now=now)
        ledger.apply_donation("abc", Decimal("7.50"), event_id="bmac:2", now=now)

        status = _account(db).donation_status
        assert status["amount"] == 12.5
        assert status["extendedDays"] == 60

    def test_fans_out_to_every_deployment(self, db, ledger, make_account, make_deployment, now):
        make_account("abc", expiry=now + timedelta(days=5))
        for days in (1, 2, 3):
            make_deployment("abc", created_at=now - timedelta(days=days), expires_at=now + timedelta(days=days))
        other = make_deployment("xyz", created_at=now, expires_at=now + timedelta(days=1))
        other_id = other.id

        result = ledger.apply_donation("abc", Decimal("5"), now=now)

        assert result.deployments_updated == 3
        db.expire_all()
        rows = db.query(Deployment).filter(Deployment.fingerprint == "abc").all()
        assert {as_utc(row.expires_at) for row in rows} == {now + timedelta(days=35)}
        assert as_utc(db.get(Deployment, other_id).expires_at) == now + timedelta(days=1)

    def test_revives_expired_deployments(self, db, ledger, make_account, make_deployment, now):
        make_account("abc", expiry=now - timedelta(days=10))
        make_deployment("abc", created_at=now - timedelta(days=31), expires_at=now - timedelta(days=10), live=False)

        result = ledger.apply_donation("abc", Decimal("5"), now=now)

        assert result.revived is True
        db.expire_all()
        row = db.query(Deployment).filter(Deployment.fingerprint == "abc").one()
        assert row.live is True
        assert as_utc(row.expires_at) == now + timedelta(days=20)

    def test_still_expired_after_donation_stays_dead(self, db, ledger, make_account, make_deployment, now):
        make_account("abc", expiry=now - timedelta(days=40))
        make_deployment("abc", created_at=now - timedelta(days=61), expires_at=now - timedelta(days=40), live=False)

        result = ledger.apply_donation("abc", Decimal("5"), now=now)

        assert result.revived is False
        db.expire_all()
        row = db.query(Deployment).filter(Deployment.fingerprint == "abc").one()
        assert row.live is False
        assert as_utc(row.expires_at) == now - timedelta(days=10)

    def test_unknown_fingerprint(self, db, ledger, now):
        with pytest.raises(NotFound) as exc_info:
            ledger.apply_donation("nobody", Decimal("5"), event_id="bmac:1", now=now)

        assert exc_info.value.message == "Portfolio not found"
        assert exc_info.value.status_code == 404
        assert db.get(ProcessedWebhookEvent, "bmac:1") is None


class TestIdempotency:
    def test_redelivery_is_not_applied_twice(self, db, ledger, make_account, now):
        make_account("abc", expiry=now)

        first = ledger.apply_donation("abc", Decimal("5"), event_id="bmac:42", now=now)
        second = ledger.apply_donation("abc", Decimal("5"), event_id="bmac:42", now=now + timedelta(minutes=1))

        assert second.duplicate is True
        assert second.new_expiry == first.new_expiry
        assert second.extended_days == 30
        account = _account(db)
        assert as_utc(account.expiry) == now + timedelta(days=30)
        assert account.donation_status["amount"] == 5

    def test_event_is_recorded(self, db, ledger, make_account, now):
        make_account("abc", expiry=now)

        ledger.apply_donation("abc", Decimal("15"), event_id="sha256:feed", now=now)

        event = db.get(ProcessedWebhookEvent, "sha256:feed")
        assert event.fingerprint == "abc"
        assert event.extended_days == 90

    def test_without_event_id_every_call_applies(self, db, ledger, make_account, now):
        make_account("abc", expiry=now)

        ledger.apply_donation("abc", Decimal("5"), now=now)
        ledger.apply_donation("abc", Decimal("5"), now=now)

        assert as_utc(_account(db).expiry) == now + timedelta(days=60)


class TestAtomicity:
    def test_store_failure_leaves_nothing_behind(self, db, ledger, make_account, make_deployment, now):
        make_account("abc", expiry=now + timedelta(days=5))
        make_deployment("abc", created_at=now, expires_at=now + timedelta(days=5))

        with patch.object(db, "flush", side_effect=OperationalError("UPDATE", {}, Exception("disk full"))):
            with pytest.raises(StoreFailure):
                ledger.apply_donation("abc", Decimal("5"), event_id="bmac:7", now=now)

        account = _account(db)
        assert as_utc(account.expiry) == now + timedelta(days=5)
        assert account.donation_status == {"amount": 0, "extendedDays": 0}
        row = db.query(Deployment).filter(Deployment.fingerprint == "abc").one()
        assert as_utc(row.expires_at) == now + timedelta(days=5)
        assert db.get(ProcessedWebhookEvent, "bmac:7") is None


class TestLargeDonations:
    @pytest.mark.parametrize("amount", [Decimal("500000"), Decimal("100000000"), Decimal("1000000000000")])
    def test_large_amount_is_capped(self, db, ledger, make_account, now, amount):
        make_account("abc", expiry=now + timedelta(days=10))

        result = ledger.apply_donation("abc", amount, event_id=f"bmac:{amount}", now=now)

        assert result.extended_days == int(amount // 5) * 30
        assert result.new_expiry == now + timedelta(days=180)
        assert as_utc(_account(db).expiry) == now + timedelta(days=180)
        assert db.get(ProcessedWebhookEvent, f"bmac:{amount}").extended_days == result.extended_days

    @pytest.mark.parametrize("amount", [Decimal("1000000000000.01"), Decimal("1e30"), Decimal("Infinity")])
    def test_amount_above_bound_rejected(self, db, ledger, make_account, now, amount):
        make_account("abc", expiry=now)

        with pytest.raises(ValidationFailure) as exc_info:
            ledger.apply_donation("abc", amount, now=now)

        assert exc_info.value.status_code == 400
        assert as_utc(_account(db).expiry) == now

    def test_sub_cent_amount_recorded_exactly(self, db, ledger, make_account, now):
        make_account("abc", expiry=now)

        ledger.apply_donation("abc", Decimal("5.555"), event_id="bmac:sub-cent", now=now)

        db.expire_all()
        assert db.get(ProcessedWebhookEvent, "bmac:sub-cent").amount == Decimal("5.555")
        assert _account(db).donation_status["amount"] == 5.555


class TestLockedReread:
    def test_uses_current_row_not_loaded_copy(self, db, ledger, make_account, now):
        account = make_account("abc", expiry=now)
        assert as_utc(account.expiry) == now  # loads the row into the session

        # Change the row behind the session's back; the loaded object keeps the old expiry.
        db.execute(
            update(Account)
            .where(Account.fingerprint == "abc")
            .values(expiry=now + timedelta(days=100))
            .execution_options(synchronize_session=False)
        )

        result = ledger.apply_donation("abc", Decimal("5"), now=now)

        assert result.new_expiry == now + timedelta(days=130)
