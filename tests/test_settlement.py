import asyncio
from unittest.mock import AsyncMock

import pytest

from x402_avm.settlement import SettlementScheduler
from x402_avm.types import SettleResponse

from .mocks import (
    FakeFacilitator,
    asset_transfer,
    encode_group,
    make_payload,
    make_requirements,
)


@pytest.fixture
def payment(payer, receiver):
    group = encode_group([asset_transfer(payer.address, receiver.address)], [payer])
    return make_payload(group)


@pytest.fixture
def requirements(receiver):
    return make_requirements(receiver.address)


class TestSettle:
    @pytest.mark.asyncio
    async def test_success_notifies_with_payer(self, payer, payment, requirements):
        facilitator = FakeFacilitator()
        on_settled = AsyncMock()

        response = await SettlementScheduler(facilitator).settle(
            payment, requirements, on_settled
        )

        assert response.success is True
        on_settled.assert_awaited_once_with(response, payer.address)
        assert facilitator.settle_calls == [(payment, requirements)]

    @pytest.mark.asyncio
    async def test_failure_not_notified(self, payment, requirements):
        facilitator = FakeFacilitator(
            settle_response=SettleResponse(
                success=False,
                error_reason="unexpected_settle_error",
                network="algorand-testnet",
            )
        )
        on_settled = AsyncMock()

        response = await SettlementScheduler(facilitator).settle(
            payment, requirements, on_settled
        )

        assert response.success is False
        on_settled.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_facilitator_error_is_contained(self, payment, requirements):
        facilitator = FakeFacilitator()
        facilitator.settle = AsyncMock(side_effect=RuntimeError("connection refused"))

        assert await SettlementScheduler(facilitator).settle(payment, requirements) is None

    @pytest.mark.asyncio
    async def test_callback_error_is_contained(self, payment, requirements):
        on_settled = AsyncMock(side_effect=RuntimeError("database down"))

        response = await SettlementScheduler(FakeFacilitator()).settle(
            payment, requirements, on_settled
        )

        assert response.success is True


class TestScheduleAndDrain:
    @pytest.mark.asyncio
    async def test_scheduled_settlement_runs_in_background(self, payment, requirements):
        facilitator = FakeFacilitator()
        scheduler = SettlementScheduler(facilitator)

        task = scheduler.schedule(payment, requirements)
        assert scheduler.pending == 1

        await task
        assert scheduler.pending == 0
        assert len(facilitator.settle_calls) == 1

    @pytest.mark.asyncio
    async def test_drain_waits_for_pending(self, payment, requirements):
        release = asyncio.Event()
        facilitator = FakeFacilitator()
        settled = facilitator.settle

        async def slow_settle(*args):
            await release.wait()
            return await settled(*args)

        facilitator.settle = slow_settle
        scheduler = SettlementScheduler(facilitator)
        scheduler.schedule(payment, requirements)
        scheduler.schedule(payment, requirements)

        asyncio.get_running_loop().call_later(0.01, release.set)
        await scheduler.drain(timeout=5)

        assert scheduler.pending == 0
        assert len(facilitator.settle_calls) == 2

    @pytest.mark.asyncio
    async def test_drain_timeout_leaves_tasks_running(self, payment, requirements):
        release = asyncio.Event()
        facilitator = FakeFacilitator()

        async def never_settles(*args):
            await release.wait()

        facilitator.settle = never_settles
        scheduler = SettlementScheduler(facilitator)
        task = scheduler.schedule(payment, requirements)

        await scheduler.drain(timeout=0.01)

        assert not task.done()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    @pytest.mark.asyncio
    async def test_drain_without_tasks(self):
        await SettlementScheduler(FakeFacilitator()).drain(timeout=0)
