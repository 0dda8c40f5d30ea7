import asyncio
import os

import pytest

from stockbook.errors import InsufficientStockError, LockTimeoutError
from stockbook.services import (
    balance_service,
    inventory_service,
    ledger_service,
    products_service,
    supplier_service,
)
from stockbook.services.concurrency import FileLockManager, MemoryLockManager, stock_lock_name


async def _stocked(ctx, quantity=10):
    product = await products_service.create_product(ctx, name="Widget")
    supplier = await supplier_service.create_supplier(ctx, name="Acme")
    await inventory_service.record_purchase(
        ctx, product_id=product["id"], supplier_id=supplier["id"], quantity=quantity, unit_cost=1,
    )
    return product["id"], supplier["id"]


class TestLockManager:
    def test_held_lock_times_out_after_bounded_retries(self):
        locks = MemoryLockManager(retries=2, min_timeout=0.001, factor=2)

        async def scenario():
            async with locks.hold("balances"):
                await locks.acquire("balances")

        with pytest.raises(LockTimeoutError) as excinfo:
            asyncio.run(scenario())
        assert excinfo.value.data == {"resource": "balances", "attempts": 3}
        assert locks.timeouts == 1
        assert not locks.is_held("balances")

    def test_released_when_body_raises(self):
        locks = MemoryLockManager()

        async def scenario():
            async with locks.hold("payables"):
                raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            asyncio.run(scenario())
        assert not locks.is_held("payables")

    def test_different_keys_do_not_contend(self):
        locks = MemoryLockManager(retries=0)

        async def scenario():
            async with locks.hold(stock_lock_name("p1", "w1")):
                async with locks.hold(stock_lock_name("p2", "w1")):
                    return True

        assert asyncio.run(scenario())

    def test_file_lock_is_exclusive_and_released(self, tmp_path):
        locks = FileLockManager(str(tmp_path), retries=1, min_timeout=0.001)

        async def scenario():
            async with locks.hold("stock:p/1:w 1"):
                assert locks.is_held("stock:p/1:w 1")
                with pytest.raises(LockTimeoutError):
                    await locks.acquire("stock:p/1:w 1")
            assert not locks.is_held("stock:p/1:w 1")
            async with locks.hold("stock:p/1:w 1"):
                return os.listdir(tmp_path)

        assert asyncio.run(scenario()) == ["stock%3Ap%2F1%3Aw%201.lock"]

    def test_file_locks_contend_across_managers(self, tmp_path):
        # two managers on one directory stand in for two worker processes
        first = FileLockManager(str(tmp_path), retries=0)
        second = FileLockManager(str(tmp_path), retries=0)

        async def scenario():
            async with first.hold("balances"):
                with pytest.raises(LockTimeoutError):
                    await second.acquire("balances")
            async with second.hold("balances"):
                return second.is_held("balances")

        assert asyncio.run(scenario())
        assert second.timeouts == 1

    def test_long_held_file_lock_is_not_taken_over(self, tmp_path):
        holder = FileLockManager(str(tmp_path), retries=0)
        waiter = FileLockManager(str(tmp_path), retries=2, min_timeout=0.01)

        async def scenario():
            async with holder.hold("stock:p:w"):
                await asyncio.sleep(0.05)
                with pytest.raises(LockTimeoutError):
                    await waiter.acquire("stock:p:w")

        asyncio.run(scenario())


class TestConcurrentSales:
    def test_interleaved_sales_cannot_oversell(self, ctx):
        product_id, _ = asyncio.run(_stocked(ctx, quantity=10))

        async def race():
            return await asyncio.gather(
                inventory_service.record_sale(ctx, product_id=product_id, quantity=6, unit_price=2),
                inventory_service.record_sale(ctx, product_id=product_id, quantity=6, unit_price=2),
                return_exceptions=True,
            )

        results = asyncio.run(race())

        sold = [r for r in results if isinstance(r, dict)]
        rejected = [r for r in results if isinstance(r, InsufficientStockError)]
        assert len(sold) == 1
        assert len(rejected) == 1
        assert rejected[0].available == 4
        assert asyncio.run(inventory_service.get_available(ctx, product_id)) == 4
        assert asyncio.run(balance_service.check_consistency(ctx)) == []

    def test_many_small_sales_keep_projection_and_lots_in_step(self, ctx):
        product_id, _ = asyncio.run(_stocked(ctx, quantity=10))
        ctx.locks.retries = 12

        async def burst():
            return await asyncio.gather(
                *[
                    inventory_service.record_sale(ctx, product_id=product_id, quantity=1, unit_price=2)
                    for _ in range(12)
                ],
                return_exceptions=True,
            )

        results = asyncio.run(burst())

        assert sum(isinstance(r, dict) for r in results) == 10
        assert all(isinstance(r, (dict, InsufficientStockError)) for r in results)
        lots = asyncio.run(ledger_service.purchase_lots(ctx, product_id, "default"))
        assert lots[0].record["remaining"] == 0
        assert asyncio.run(inventory_service.get_available(ctx, product_id)) == 0

    def test_sale_waiting_on_busy_pair_times_out(self, ctx):
        product_id, _ = asyncio.run(_stocked(ctx))
        ctx.locks.retries = 1

        async def scenario():
            async with ctx.locks.hold(stock_lock_name(product_id, "default")):
                await inventory_service.record_sale(ctx, product_id=product_id, quantity=1, unit_price=2)

        with pytest.raises(LockTimeoutError):
            asyncio.run(scenario())
        assert asyncio.run(inventory_service.get_available(ctx, product_id)) == 10
