"""
Tests for the extraction ledger and the cancellation token.
"""

import asyncio

import pytest
from stylesnap.errors import ExtractionTimeoutError
from stylesnap.lifecycle import CancellationToken, ExtractionLedger
from stylesnap.models import Viewport
from stylesnap.protocols import ExtractionState

from tests.helpers.fake_browser import FakeLease


class TestCancellationToken:
    @pytest.mark.asyncio
    async def test_race_returns_result_before_abort(self):
        token = CancellationToken()

        async def work():
            return 42

        assert await token.race(work()) == 42

    @pytest.mark.asyncio
    async def test_armed_token_interrupts_pending_work(self):
        token = CancellationToken()
        token.arm(0.01)

        with pytest.raises(ExtractionTimeoutError, match="timed out after 10ms"):
            await token.race(asyncio.sleep(5))
        assert token.aborted

    @pytest.mark.asyncio
    async def test_checkpoint_after_abort(self):
        token = CancellationToken()
        token.checkpoint()
        token.abort("Extraction cancelled")
        token.abort("second reason is ignored")

        with pytest.raises(ExtractionTimeoutError, match="Extraction cancelled"):
            token.checkpoint()
        assert token.reason == "Extraction cancelled"

    @pytest.mark.asyncio
    async def test_race_propagates_work_errors(self):
        token = CancellationToken()

        async def boom():
            raise ValueError("boom")

        with pytest.raises(ValueError):
            await token.race(boom())


class TestExtractionLedger:
    @pytest.mark.asyncio
    async def test_release_returns_the_page_once(self):
        lease = FakeLease()
        ledger = ExtractionLedger(lease)
        session = ledger.open("https://example.com", 30)
        assert session.extraction_id in ledger

        await ledger.lease_page(session, Viewport())
        assert lease.active == {"page_1": True}

        assert await ledger.release(session.extraction_id) is True
        assert await ledger.release(session.extraction_id) is False

        assert lease.created == 1
        assert lease.closed == 1
        assert lease.active == {"page_1": False}
        assert session.extraction_id not in ledger
        assert session.token.aborted
        assert session.state is ExtractionState.RELEASED_ON_ERROR

    @pytest.mark.asyncio
    async def test_release_after_assembly_is_clean(self):
        ledger = ExtractionLedger(FakeLease())
        session = ledger.open("https://example.com", 30)
        await ledger.lease_page(session, Viewport())
        for state in (
            ExtractionState.LEASED,
            ExtractionState.NAVIGATING,
            ExtractionState.STABILIZING,
            ExtractionState.EXTRACTING,
            ExtractionState.ASSEMBLED,
        ):
            ledger.transition(session, state)

        await ledger.release(session.extraction_id)
        assert session.state is ExtractionState.RELEASED

    @pytest.mark.asyncio
    async def test_release_without_page(self):
        lease = FakeLease()
        ledger = ExtractionLedger(lease)
        session = ledger.open("https://example.com", 30)

        assert await ledger.release(session.extraction_id) is True
        assert lease.closed == 0
        assert len(ledger) == 0

    @pytest.mark.asyncio
    async def test_invalid_transition_raises(self):
        ledger = ExtractionLedger(FakeLease())
        session = ledger.open("https://example.com", 30)

        with pytest.raises(RuntimeError, match="created -> extracting"):
            ledger.transition(session, ExtractionState.EXTRACTING)
        await ledger.release(session.extraction_id)

    @pytest.mark.asyncio
    async def test_replace_page_returns_old_page_first(self):
        lease = FakeLease()
        ledger = ExtractionLedger(lease)
        session = ledger.open("https://example.com", 30)
        first = await ledger.lease_page(session, Viewport())

        second = await ledger.replace_page(session, Viewport())
        assert second is not first
        assert first.closed
        assert session.page_id == "page_2"
        assert lease.open_pages == 1

        await ledger.release(session.extraction_id)
        assert lease.created == lease.closed == 2

    @pytest.mark.asyncio
    async def test_second_lease_is_refused(self):
        ledger = ExtractionLedger(FakeLease())
        session = ledger.open("https://example.com", 30)
        await ledger.lease_page(session, Viewport())

        with pytest.raises(RuntimeError, match="already holds"):
            await ledger.lease_page(session, Viewport())
        await ledger.release(session.extraction_id)

    @pytest.mark.asyncio
    async def test_close_failures_do_not_block_release(self):
        lease = FakeLease()

        async def failing_close(page_id):
            raise RuntimeError("context already gone")

        lease.close_page = failing_close
        ledger = ExtractionLedger(lease)
        session = ledger.open("https://example.com", 30)
        await ledger.lease_page(session, Viewport())

        assert await ledger.release(session.extraction_id) is True
        assert len(ledger) == 0

    @pytest.mark.asyncio
    async def test_release_all(self):
        lease = FakeLease()
        ledger = ExtractionLedger(lease)
        for _ in range(3):
            session = ledger.open("https://example.com", 30)
            await ledger.lease_page(session, Viewport())

        assert await ledger.release_all() == 3
        assert ledger.active_ids() == []
        assert lease.closed == 3
