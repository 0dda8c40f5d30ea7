import asyncio

import pytest

from stockbook.errors import ValidationError
from stockbook.services import (
    inventory_service,
    products_service,
    reporting_service,
    supplier_service,
)


@pytest.fixture
def timeline(ctx, clock):
    """
    t=1000 purchase 10 @ 2, t=2000 sale 4 @ 5 (FIFO), t=3000 purchase 5 @ 4,
    t=4000 sale 2 @ 6 (average).
    """
    async def build():
        product = await products_service.create_product(ctx, name="Widget")
        other = await products_service.create_product(ctx, name="Gadget")
        supplier = await supplier_service.create_supplier(ctx, name="Acme")
        pid, sid = product["id"], supplier["id"]

        clock.now = 1000
        await inventory_service.record_purchase(ctx, product_id=pid, supplier_id=sid, quantity=10, unit_cost=2)
        clock.now = 2000
        await inventory_service.record_sale(ctx, product_id=pid, quantity=4, unit_price=5)
        clock.now = 3000
        await inventory_service.record_purchase(ctx, product_id=pid, supplier_id=sid, quantity=5, unit_cost=4)
        clock.now = 4000
        await inventory_service.record_sale(
            ctx, product_id=pid, quantity=2, unit_price=6, costing_method="AVERAGE",
        )
        return pid, other["id"]

    return asyncio.run(build())


class TestProfitAndLoss:
    def test_whole_history(self, ctx, timeline):
        report = asyncio.run(reporting_service.report_profit_and_loss(ctx))

        # average over 6 @ 2 and 5 @ 4: 2 * 32 / 11 = 5.818.. -> 5.82
        assert report["revenue"] == 32
        assert report["cogs"] == 13.82
        assert report["purchases"] == 40
        assert report["gross_profit"] == 18.18

    def test_bounds_are_inclusive(self, ctx, timeline):
        report = asyncio.run(reporting_service.report_profit_and_loss(ctx, 1000, 2000))

        assert report["purchases"] == 20
        assert report["revenue"] == 20
        assert report["cogs"] == 8
        assert report["gross_profit"] == 12

    def test_window_excluding_edges(self, ctx, timeline):
        report = asyncio.run(reporting_service.report_profit_and_loss(ctx, 1001, 2999))

        assert report["purchases"] == 0
        assert report["revenue"] == 20

    def test_inverted_window(self, ctx, timeline):
        with pytest.raises(ValidationError):
            asyncio.run(reporting_service.report_profit_and_loss(ctx, 5000, 10))


class TestMovementsAndRecent:
    def test_product_movements_in_creation_order(self, ctx, timeline):
        product_id, other_id = timeline

        movements = asyncio.run(reporting_service.report_product_movements(ctx, product_id))

        assert [(m["type"], m["timestamp"]) for m in movements] == [
            ("PURCHASE", 1000), ("SALE", 2000), ("PURCHASE", 3000), ("SALE", 4000),
        ]
        assert asyncio.run(reporting_service.report_product_movements(ctx, other_id)) == []

    def test_recent_is_newest_first_and_limited(self, ctx, timeline):
        recent = asyncio.run(reporting_service.list_recent_transactions(ctx, 2))
        assert [r["timestamp"] for r in recent] == [4000, 3000]

    def test_recent_defaults_to_configured_limit(self, ctx, timeline):
        ctx.recent_transactions_limit = 3
        assert len(asyncio.run(reporting_service.list_recent_transactions(ctx))) == 3


class TestValuationAndStats:
    def test_valuation_uses_remaining_lots(self, ctx, timeline):
        product_id, _ = timeline

        valuation = asyncio.run(reporting_service.stock_valuation(ctx))

        # FIFO sale took 4 from lot A; the average sale left lots alone
        assert valuation["rows"] == [{
            "product_id": product_id,
            "warehouse_id": "default",
            "remaining_quantity": 11,
            "open_lots": 2,
            "value": 32,
        }]
        assert valuation["total_value"] == 32

    def test_summary_stats(self, ctx, timeline):
        stats = asyncio.run(reporting_service.summary_stats(ctx))
        assert stats == {
            "total_sales": 32,
            "total_products": 2,
            "total_suppliers": 1,
            "transaction_count": 4,
        }
