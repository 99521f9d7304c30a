"""
Timing policies for the two heartbeat roles.

A policy is told by the HeartbeatCore about each heartbeat it sends and receives,
and arms or cancels the core's timeout accordingly.
"""
import logging

logger = logging.getLogger(__name__)


class HeartbeatPolicy:
    """ Does nothing. """

    def signal_sent(self, core):
        pass

    def signal_received(self, core):
        pass


class FixedIntervalPolicy(HeartbeatPolicy):
    """
    For the side that sends heartbeats on a schedule: every heartbeat sent must be
    answered within ping_timeout seconds. Any heartbeat received counts as the answer.
    """

    def __init__(self, ping_timeout):
        self.ping_timeout = ping_timeout

    def signal_sent(self, core):
        core.arm_timeout(self.ping_timeout)

    def signal_received(self, core):
        core.cancel_timeout()


class AdaptiveIntervalPolicy(HeartbeatPolicy):
    """
    For the side that answers heartbeats. It has no schedule of its own; instead it
    learns the peer's cadence and expects the next heartbeat within
    ping_window_threshold times the average gap.

    The first two heartbeats only set up the timings: the gap between them seeds the
    average. From the third heartbeat on, the average is updated with weight 4/5 on the
    previous value and a timeout is armed. After a timeout the setup starts over, since the
    gap that ended it says nothing about the cadence.

    Each heartbeat received is answered with exactly one heartbeat.
    """

    def __init__(self, ping_window_threshold):
        self.ping_window_threshold = ping_window_threshold

    def signal_received(self, core):
        state = core.state
        now = core.scheduler.now()
        if state.is_timed_out:
            state.warmup_count = 0
        elif state.warmup_count <= 1:
            if state.warmup_count == 1:
                state.smoothed_interval = now - state.last_signal_time
            state.warmup_count += 1
        else:
            elapsed = now - state.last_signal_time
            state.smoothed_interval = (state.smoothed_interval * 4 + elapsed) / 5
            core.arm_timeout(state.smoothed_interval * self.ping_window_threshold)
        state.last_signal_time = now
        logger.debug("heartbeat received, average interval %.3fs" % state.smoothed_interval)
        core.send_signal()
