"""
The liveness state machine shared by both ends of a connection.

    Alive --(timeout fires)--> TimedOut --(heartbeat received)--> Alive

The core sends and receives heartbeat frames, keeps at most one timeout armed,
and reports what happens as internal notifications through the multiplexer.
When the timing of those things happens is decided by the role's policy (see policy.py),
which is told about every heartbeat sent and received.
"""
import logging

from livesocket.multiplexer import HEARTBEAT_FRAME, SIGNAL_RECEIVED, SIGNAL_RECOVERED, SIGNAL_SENT, \
    SIGNAL_TIMEOUT

logger = logging.getLogger(__name__)


class HeartbeatState:
    """ The mutable liveness state of one endpoint. """

    def __init__(self):
        self.is_timed_out = False
        self.pending_timeout = None         # scheduler token for the armed timeout
        self.last_signal_time = None        # scheduler time of the last received heartbeat
        self.smoothed_interval = 0.0        # weighted average of the gaps between received heartbeats
        self.warmup_count = 0               # heartbeats seen since the timings were last reset

    def __repr__(self):
        return "HeartbeatState(is_timed_out=%r, smoothed_interval=%r, warmup_count=%r)" % \
            (self.is_timed_out, self.smoothed_interval, self.warmup_count)


class HeartbeatCore:
    """
    :param multiplexer: provides the current transport and delivers the notifications
    :param scheduler: arms and cancels the timeout
    :param policy: reacts to heartbeats sent and received. Must provide signal_sent(core)
        and signal_received(core).
    """

    def __init__(self, multiplexer, scheduler, policy):
        self.multiplexer = multiplexer
        self.scheduler = scheduler
        self.policy = policy
        self.state = HeartbeatState()

    @property
    def is_timed_out(self):
        return self.state.is_timed_out

    def send_signal(self):
        """
        Sends a heartbeat. Does nothing when there is no open transport.
        :return: True if the heartbeat was sent
        """
        transport = self.multiplexer.transport
        if transport is None or not transport.is_open:
            logger.debug("no open transport, heartbeat not sent")
            return False
        # the policy arms its deadline first: a reply can arrive before send() returns
        self.policy.signal_sent(self)
        transport.send(HEARTBEAT_FRAME)
        self.multiplexer.dispatch_internal(SIGNAL_SENT)
        return True

    def signal_received(self):
        """ Called for each heartbeat frame that arrives. This is the only place a timed out connection recovers. """
        self.policy.signal_received(self)
        self.multiplexer.dispatch_internal(SIGNAL_RECEIVED)
        if self.state.is_timed_out:
            self.state.is_timed_out = False
            logger.info("heartbeat resumed")
            self.multiplexer.dispatch_internal(SIGNAL_RECOVERED)

    def arm_timeout(self, duration):
        self.cancel_timeout()
        self.state.pending_timeout = self.scheduler.schedule(duration, self.timeout_fired)

    def cancel_timeout(self):
        if self.state.pending_timeout is not None:
            self.scheduler.cancel(self.state.pending_timeout)
            self.state.pending_timeout = None

    def timeout_fired(self):
        self.state.pending_timeout = None
        if not self.state.is_timed_out:
            self.state.is_timed_out = True
            logger.info("heartbeat timed out")
            self.multiplexer.dispatch_internal(SIGNAL_TIMEOUT)

    def clear_timed_out(self):
        """ forgets a previous timeout without reporting a recovery, e.g. when a new transport opens """
        self.state.is_timed_out = False
