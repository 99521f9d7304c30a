import asyncio
import unittest
from unittest import TestCase
from unittest.mock import Mock

from hamcrest import assert_that, calling, empty, is_, raises

from livesocket.support.scheduler import AsyncioScheduler, Scheduler, VirtualScheduler


class SchedulerTest(TestCase):
    def test_abstract_methods(self):
        sut = Scheduler()
        assert_that(calling(sut.now), raises(NotImplementedError))
        assert_that(calling(sut.schedule).with_args(1, Mock()), raises(NotImplementedError))
        assert_that(calling(sut.cancel).with_args(None), raises(NotImplementedError))


class VirtualSchedulerTest(TestCase):

    def setUp(self):
        self.sut = VirtualScheduler()

    def test_starts_at_zero(self):
        assert_that(self.sut.now(), is_(0.0))
        assert_that(self.sut.pending, is_(empty()))

    def test_callback_not_run_before_due(self):
        callback = Mock()
        self.sut.schedule(1.0, callback, "a")
        self.sut.advance(0.5)
        callback.assert_not_called()
        self.sut.advance(0.5)
        callback.assert_called_once_with("a")
        assert_that(self.sut.now(), is_(1.0))

    def test_callback_sees_its_due_time(self):
        seen = []
        self.sut.schedule(0.25, lambda: seen.append(self.sut.now()))
        self.sut.advance(2)
        assert_that(seen, is_([0.25]))
        assert_that(self.sut.now(), is_(2.0))

    def test_cancel(self):
        callback = Mock()
        token = self.sut.schedule(1.0, callback)
        self.sut.cancel(token)
        assert_that(self.sut.advance(5), is_(0))
        callback.assert_not_called()

    def test_cancel_none_and_fired_tokens(self):
        token = self.sut.schedule(0, Mock())
        self.sut.advance(0)
        self.sut.cancel(token)
        self.sut.cancel(None)

    def test_same_due_time_runs_in_schedule_order(self):
        order = []
        self.sut.schedule(1.0, order.append, 1)
        self.sut.schedule(1.0, order.append, 2)
        self.sut.schedule(0.5, order.append, 0)
        self.sut.advance(1.0)
        assert_that(order, is_([0, 1, 2]))

    def test_callbacks_scheduled_while_advancing_run_if_due(self):
        order = []

        def first():
            order.append("first")
            self.sut.schedule(0.5, order.append, "second")

        self.sut.schedule(0.5, first)
        self.sut.advance(1.0)
        assert_that(order, is_(["first", "second"]))

    def test_advance_backwards(self):
        assert_that(calling(self.sut.advance).with_args(-1), raises(ValueError))

    def test_run_all(self):
        callback = Mock()
        self.sut.schedule(3.0, callback)
        self.sut.schedule(7.0, callback)
        assert_that(self.sut.run_all(), is_(2))
        assert_that(self.sut.now(), is_(7.0))

    def test_run_all_detects_endless_rescheduling(self):
        def again():
            self.sut.schedule(1, again)

        self.sut.schedule(1, again)
        assert_that(calling(self.sut.run_all).with_args(10), raises(RuntimeError))


class AsyncioSchedulerTest(unittest.IsolatedAsyncioTestCase):

    async def test_schedule_runs_on_loop(self):
        sut = AsyncioScheduler()
        fired = asyncio.Event()
        sut.schedule(0.01, fired.set)
        await asyncio.wait_for(fired.wait(), 1)
        assert_that(fired.is_set(), is_(True))

    async def test_cancel(self):
        sut = AsyncioScheduler()
        callback = Mock()
        token = sut.schedule(0.01, callback)
        sut.cancel(token)
        sut.cancel(None)
        await asyncio.sleep(0.05)
        callback.assert_not_called()

    async def test_now_follows_loop_time(self):
        sut = AsyncioScheduler(asyncio.get_running_loop())
        assert_that(abs(sut.now() - asyncio.get_running_loop().time()) < 1, is_(True))
