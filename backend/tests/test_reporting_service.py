# Overview: Pytest coverage for session statistics and the outlet daily summary.

import pytest

from pos_core.errors import NotFoundError, SessionNotFoundError
from pos_core.services import inventory_service, register_service, reporting_service, sales_service


def _sell(outlet_id, product_id, unit_price, method):
    return sales_service.create_sale(
        outlet_id,
        [{"product_id": product_id, "quantity": 1, "unit_price": unit_price}],
        method,
        tax_rate=0,
    )


class TestSummarizeSession:

    def test_empty_session(self, open_session):
        summary = reporting_service.summarize_session(open_session.id)

        assert summary["total_sales"] == 0
        assert summary["sale_count"] == 0
        assert summary["average_ticket"] == 0
        assert summary["totals_by_payment_method"] == {}
        assert summary["theoretical_balance_now"] == 50000
        assert summary["status"] == "OPEN"

    def test_breakdown_by_payment_method(self, outlet, service_product, open_session):
        _sell(outlet.id, service_product.id, 1000, "CASH")
        _sell(outlet.id, service_product.id, 2000, "CASH")
        _sell(outlet.id, service_product.id, 5000, "MOBILE_MONEY")
        _sell(outlet.id, service_product.id, 700, "CARD")
        _sell(outlet.id, service_product.id, 300, "CHEQUE")
        register_service.append_ledger_entry(open_session.id, "MANUAL_IN", 4000, "CASH")
        register_service.append_ledger_entry(open_session.id, "MANUAL_OUT", 1500, "CASH")

        summary = reporting_service.summarize_session(open_session.id)

        assert summary["total_sales"] == 9000
        assert summary["totals_by_payment_method"] == {
            "CASH": 3000, "MOBILE_MONEY": 5000, "CARD": 700, "CHEQUE": 300,
        }
        assert summary["cash"] == 3000
        assert summary["mobile_money"] == 5000
        assert summary["card"] == 700
        assert summary["other"] == 300
        assert summary["sale_count"] == 5
        assert summary["average_ticket"] == 1800
        assert summary["total_manual_in"] == 4000
        assert summary["total_manual_out"] == 1500
        assert summary["theoretical_balance_now"] == 50000 + 9000 + 4000 - 1500

    def test_average_ticket_rounds_half_up(self, outlet, service_product, open_session):
        _sell(outlet.id, service_product.id, 100, "CASH")
        _sell(outlet.id, service_product.id, 101, "CASH")

        assert reporting_service.summarize_session(open_session.id)["average_ticket"] == 101

    def test_summary_matches_close(self, outlet, service_product, open_session):
        _sell(outlet.id, service_product.id, 12000, "CASH")
        register_service.append_ledger_entry(open_session.id, "MANUAL_OUT", 2000, "CASH")

        live = reporting_service.summarize_session(open_session.id)["theoretical_balance_now"]
        closed = register_service.close_session(open_session.id, 60000)

        assert closed.theoretical_balance == live
        summary = reporting_service.summarize_session(open_session.id)
        assert summary["status"] == "CLOSED"
        assert summary["theoretical_balance_now"] == closed.theoretical_balance
        assert summary["variance"] == 0

    def test_summary_is_read_only(self, outlet, service_product, open_session):
        _sell(outlet.id, service_product.id, 500, "CASH")
        first = reporting_service.summarize_session(open_session.id)
        second = reporting_service.summarize_session(open_session.id)
        assert first == second

    def test_unknown_session(self, db_session):
        with pytest.raises(SessionNotFoundError):
            reporting_service.summarize_session(999999)


class TestOutletDailySummary:

    def test_day_without_sessions(self, outlet):
        report = reporting_service.outlet_daily_summary(outlet.id)

        assert report["session_count"] == 0
        assert report["current_session"] is None
        assert report["total_sales"] == 0
        assert report["order_count"] == 0

    def test_day_totals_across_sessions(self, outlet, stocked_product, service_product, open_session):
        _sell(outlet.id, service_product.id, 1000, "CASH")
        register_service.close_session(open_session.id, 51000)

        second = register_service.open_session(outlet.id, 10000)
        _sell(outlet.id, service_product.id, 3000, "MOBILE_MONEY")
        inventory_service.adjust_stock(outlet.id, stocked_product.id, -7, reason="Count")

        report = reporting_service.outlet_daily_summary(outlet.id)

        assert report["session_count"] == 2
        assert report["order_count"] == 2
        assert report["total_sales"] == 4000
        assert report["sale_count"] == 2
        assert report["current_session"]["session_id"] == second.id
        assert report["current_session"]["status"] == "OPEN"
        assert report["current_session"]["theoretical_balance_now"] == 13000
        assert report["low_stock_count"] == 1

    def test_unknown_outlet(self, db_session):
        with pytest.raises(NotFoundError):
            reporting_service.outlet_daily_summary(999999)
