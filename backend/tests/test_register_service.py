# Overview: Pytest coverage for register session lifecycle and cash ledger.

import logging

import pytest
from sqlalchemy.exc import IntegrityError

from pos_core.errors import (
    AlreadyClosedError,
    AlreadyOpenError,
    SessionNotFoundError,
    SessionNotOpenError,
    ValidationError,
)
from pos_core.extensions import db
from pos_core.models import RegisterLedgerEntry, RegisterSession
from pos_core.services import register_service
from pos_core.time_utils import business_today, utcnow


class TestOpenSession:

    def test_open_sets_float_and_status(self, outlet):
        session = register_service.open_session(outlet.id, 50000, opened_by=3, notes="Morning")

        assert session.status == "OPEN"
        assert session.is_open
        assert session.opening_float == 50000
        assert session.business_date == business_today()
        assert session.opened_by_user_id == 3
        assert session.closing_count is None
        assert session.theoretical_balance is None
        assert session.variance is None

    def test_second_open_same_day_fails(self, outlet, open_session):
        """At most one OPEN session per outlet and day."""
        with pytest.raises(AlreadyOpenError):
            register_service.open_session(outlet.id, 10000)

        assert db.session.query(RegisterSession).filter_by(outlet_id=outlet.id, status="OPEN").count() == 1

    def test_other_outlet_unaffected(self, outlet, other_outlet, open_session):
        session = register_service.open_session(other_outlet.id, 0)
        assert session.outlet_id == other_outlet.id

    def test_reopen_after_close(self, outlet, open_session):
        register_service.close_session(open_session.id, 50000)

        session = register_service.open_session(outlet.id, 20000)
        assert session.id != open_session.id
        assert session.status == "OPEN"

    def test_negative_float_rejected(self, outlet):
        with pytest.raises(ValidationError):
            register_service.open_session(outlet.id, -1)

    def test_lost_race_becomes_already_open(self, outlet, open_session, monkeypatch):
        """A concurrent opener that passed the pre-check is stopped by the partial unique index."""
        monkeypatch.setattr(register_service, "get_open_session", lambda *args, **kwargs: None)

        with pytest.raises(AlreadyOpenError):
            register_service.open_session(outlet.id, 10000)

        assert db.session.query(RegisterSession).filter_by(outlet_id=outlet.id).count() == 1

    def test_partial_index_allows_closed_duplicates(self, outlet):
        today = business_today()
        db.session.add(RegisterSession(outlet_id=outlet.id, business_date=today, status="CLOSED", opening_float=0))
        db.session.add(RegisterSession(outlet_id=outlet.id, business_date=today, status="CLOSED", opening_float=0))
        db.session.commit()

        db.session.add(RegisterSession(outlet_id=outlet.id, business_date=today, status="OPEN", opening_float=0))
        db.session.add(RegisterSession(outlet_id=outlet.id, business_date=today, status="OPEN", opening_float=0))
        with pytest.raises(IntegrityError):
            db.session.commit()
        db.session.rollback()


class TestLedger:

    def test_manual_entries(self, open_session):
        entry_in = register_service.append_ledger_entry(
            open_session.id, "MANUAL_IN", 5000, "CASH", reference_type="DEPOSIT", description="Change top-up",
        )
        entry_out = register_service.append_ledger_entry(
            open_session.id, "manual_out", 2500, "cash", reference_type="EXPENSE", description="Taxi",
        )

        assert entry_in.entry_type == "MANUAL_IN"
        assert entry_out.entry_type == "MANUAL_OUT"
        assert entry_out.payment_method == "CASH"
        assert [e.id for e in register_service.get_session_entries(open_session.id)] == [entry_in.id, entry_out.id]

    def test_append_does_not_touch_session_row(self, open_session):
        version_before = open_session.version_id
        register_service.append_ledger_entry(open_session.id, "MANUAL_IN", 100, "CASH")

        db.session.expire_all()
        assert db.session.get(RegisterSession, open_session.id).version_id == version_before

    def test_zero_manual_amount_rejected(self, open_session):
        with pytest.raises(ValidationError):
            register_service.append_ledger_entry(open_session.id, "MANUAL_OUT", 0, "CASH")

    def test_invalid_payment_method_rejected(self, open_session):
        with pytest.raises(ValidationError):
            register_service.append_ledger_entry(open_session.id, "MANUAL_IN", 100, "BITCOIN")

    def test_append_to_closed_session_fails(self, open_session):
        register_service.close_session(open_session.id, 50000)

        with pytest.raises(SessionNotOpenError):
            register_service.append_ledger_entry(open_session.id, "MANUAL_IN", 100, "CASH")
        assert db.session.query(RegisterLedgerEntry).count() == 0

    def test_append_to_unknown_session_fails(self, db_session):
        with pytest.raises(SessionNotOpenError):
            register_service.append_ledger_entry(999999, "MANUAL_IN", 100, "CASH")


class TestCloseSession:

    def test_close_computes_balance_and_variance(self, open_session):
        register_service.append_ledger_entry(open_session.id, "MANUAL_IN", 10000, "CASH")
        register_service.append_ledger_entry(open_session.id, "MANUAL_OUT", 4000, "CASH")

        session = register_service.close_session(open_session.id, 55000, closed_by=4, notes="Short 1000")

        assert session.status == "CLOSED"
        assert not session.is_open
        assert session.theoretical_balance == 50000 + 10000 - 4000
        assert session.variance == 55000 - 56000
        assert session.closing_count == 55000
        assert session.closed_by_user_id == 4
        assert session.closed_at is not None

    def test_close_twice_fails(self, open_session):
        register_service.close_session(open_session.id, 50000)

        with pytest.raises(AlreadyClosedError):
            register_service.close_session(open_session.id, 60000)

        db.session.expire_all()
        session = register_service.get_session(open_session.id)
        assert session.closing_count == 50000
        assert session.variance == 0

    def test_close_unknown_session(self, db_session):
        with pytest.raises(SessionNotFoundError) as exc_info:
            register_service.close_session(999999, 0)

        assert isinstance(exc_info.value, SessionNotOpenError)

    def test_large_variance_logs_warning(self, app, open_session, caplog):
        with caplog.at_level(logging.WARNING, logger=app.logger.name):
            register_service.close_session(open_session.id, 40000)

        assert any("variance -10000" in r.getMessage() for r in caplog.records)

    def test_theoretical_balance_counts_every_payment_method(self, open_session):
        for amount, method in ((3000, "CASH"), (7000, "MOBILE_MONEY"), (1000, "CARD")):
            db.session.add(RegisterLedgerEntry(
                session_id=open_session.id,
                entry_type="SALE",
                amount=amount,
                payment_method=method,
                reference_type="SALE",
                reference_id=f"T-{method}",
                created_at=utcnow(),
            ))
        db.session.commit()

        assert register_service.compute_theoretical_balance(open_session) == 61000


class TestListings:

    def test_list_sessions_filters(self, outlet, other_outlet, open_session):
        register_service.open_session(other_outlet.id, 0)
        register_service.close_session(open_session.id, 50000)

        assert [s.id for s in register_service.list_sessions(outlet.id)] == [open_session.id]
        open_ids = [s.outlet_id for s in register_service.list_sessions(status="open")]
        assert open_ids == [other_outlet.id]
        assert register_service.list_sessions(date_from=business_today(), date_to=business_today())

    def test_get_open_session(self, outlet, open_session):
        assert register_service.get_open_session(outlet.id).id == open_session.id
        register_service.close_session(open_session.id, 0)
        assert register_service.get_open_session(outlet.id) is None
