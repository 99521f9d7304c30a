"""
Timer capability used by the heartbeat and reconnection logic.

Everything that needs to happen later is expressed as schedule(delay, callback)
returning a token, which can be handed back to cancel(). Two implementations:

- AsyncioScheduler runs the callbacks on an asyncio event loop.
- VirtualScheduler keeps its own clock that only moves when advance() is called,
  so timing behaviour can be exercised deterministically.
"""
import asyncio
import heapq
import itertools


class Scheduler:
    """ Schedules callbacks to run once after a delay (in seconds). """

    def now(self) -> float:
        """ the current time of this scheduler's clock, in seconds """
        raise NotImplementedError

    def schedule(self, delay, callback, *args):
        """
        Arranges for callback(*args) to be called after delay seconds.
        :return: a token that can be passed to cancel()
        """
        raise NotImplementedError

    def cancel(self, token):
        """ cancels a scheduled callback. Cancelling None, or a token that already fired, does nothing. """
        raise NotImplementedError


class AsyncioScheduler(Scheduler):
    """ Schedules callbacks on an asyncio event loop. """

    def __init__(self, loop: asyncio.AbstractEventLoop=None):
        self._loop = loop

    @property
    def loop(self):
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now(self):
        return self.loop.time()

    def schedule(self, delay, callback, *args) -> asyncio.TimerHandle:
        return self.loop.call_later(max(0, delay), callback, *args)

    def cancel(self, token):
        if token is not None:
            token.cancel()


class ScheduledCall:
    """ A pending callback on a VirtualScheduler. """

    def __init__(self, due, callback, args):
        self.due = due
        self.callback = callback
        self.args = args
        self.cancelled = False

    def __repr__(self):
        return "ScheduledCall(due=%r, callback=%r, cancelled=%r)" % (self.due, self.callback, self.cancelled)


class VirtualScheduler(Scheduler):
    """
    A scheduler driven by a virtual clock.

    Time starts at `start` and only moves forward when advance() or run_all() is called.
    Callbacks due at the same instant run in the order they were scheduled.
    """

    def __init__(self, start=0.0):
        self._time = start
        self._queue = []
        self._sequence = itertools.count()

    def now(self):
        return self._time

    def schedule(self, delay, callback, *args) -> ScheduledCall:
        call = ScheduledCall(self._time + max(0, delay), callback, args)
        heapq.heappush(self._queue, (call.due, next(self._sequence), call))
        return call

    def cancel(self, token):
        if token is not None:
            token.cancelled = True

    @property
    def pending(self):
        """ the scheduled calls that have not yet fired or been cancelled, earliest first """
        return [call for _, _, call in sorted(self._queue) if not call.cancelled]

    def advance(self, seconds):
        """
        Moves the clock forward, running each callback that becomes due along the way.
        Callbacks see now() as their own due time.
        :return: the number of callbacks run
        """
        if seconds < 0:
            raise ValueError("cannot move the clock backwards: %s" % seconds)
        target = self._time + seconds
        count = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, call = heapq.heappop(self._queue)
            if call.cancelled:
                continue
            self._time = due
            call.cancelled = True
            call.callback(*call.args)
            count += 1
        self._time = target
        return count

    def run_all(self, limit=1000):
        """ runs scheduled callbacks until none remain. Raises RuntimeError if more than limit run. """
        count = 0
        while self.pending:
            if count >= limit:
                raise RuntimeError("scheduler did not settle after %d callbacks" % limit)
            count += self.advance(self.pending[0].due - self._time)
        return count
