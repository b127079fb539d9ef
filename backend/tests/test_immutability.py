# Overview: Pytest coverage for append-only enforcement on ledgers and closed sessions.

import pytest

from pos_core.errors import ImmutabilityViolationError
from pos_core.extensions import db
from pos_core.models import InventoryMovement, RegisterLedgerEntry, RegisterSession
from pos_core.services import inventory_service, register_service


class TestInventoryMovementImmutability:

    def test_update_blocked(self, outlet, product):
        movement = inventory_service.receive_stock(outlet.id, product.id, 5)

        movement.quantity_delta = 500
        with pytest.raises(ImmutabilityViolationError):
            db.session.flush()
        db.session.rollback()

        assert db.session.get(InventoryMovement, movement.id).quantity_delta == 5

    def test_delete_blocked(self, outlet, product):
        movement = inventory_service.receive_stock(outlet.id, product.id, 5)

        db.session.delete(movement)
        with pytest.raises(ImmutabilityViolationError):
            db.session.flush()
        db.session.rollback()

        assert inventory_service.current_stock(outlet.id, product.id) == 5


class TestRegisterLedgerImmutability:

    def test_update_blocked(self, open_session):
        entry = register_service.append_ledger_entry(open_session.id, "MANUAL_IN", 1000, "CASH")

        entry.amount = 1
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            db.session.flush()
        db.session.rollback()

        assert exc_info.value.details == {"entity_type": "RegisterLedgerEntry", "entity_id": entry.id}

    def test_delete_blocked(self, open_session):
        entry = register_service.append_ledger_entry(open_session.id, "MANUAL_OUT", 1000, "CASH")

        db.session.delete(entry)
        with pytest.raises(ImmutabilityViolationError):
            db.session.flush()
        db.session.rollback()

        assert db.session.query(RegisterLedgerEntry).count() == 1


class TestRegisterSessionImmutability:

    def test_open_session_can_be_closed(self, open_session):
        session = register_service.close_session(open_session.id, 50000)
        assert session.status == "CLOSED"

    def test_closed_session_cannot_be_modified(self, open_session):
        register_service.close_session(open_session.id, 50000)
        session = db.session.get(RegisterSession, open_session.id)

        session.variance = 0
        session.closing_count = 999999
        with pytest.raises(ImmutabilityViolationError):
            db.session.flush()
        db.session.rollback()

    def test_closed_session_cannot_be_reopened(self, open_session):
        register_service.close_session(open_session.id, 50000)
        session = db.session.get(RegisterSession, open_session.id)

        session.status = "OPEN"
        with pytest.raises(ImmutabilityViolationError):
            db.session.flush()
        db.session.rollback()

        assert db.session.get(RegisterSession, open_session.id).status == "CLOSED"

    def test_session_delete_blocked(self, open_session):
        db.session.delete(db.session.get(RegisterSession, open_session.id))
        with pytest.raises(ImmutabilityViolationError):
            db.session.flush()
        db.session.rollback()
