"""
Endpoints tie a transport to the heartbeat and the reconnection logic.

An InitiatingEndpoint sends heartbeats on a fixed schedule and expects each one to be
answered within ping_timeout. A ResponsiveEndpoint answers every heartbeat it receives and
learns the peer's cadence to decide when the peer has gone quiet. Either side reports a
silent peer with a 'signal-timeout' notification and its return with 'signal-recovered';
the transport is not closed. When the transport itself closes, an endpoint with a
transport factory builds a new one after a backoff delay.

Listeners are registered on the endpoint rather than the transport, and stay registered
across reconnections::

    endpoint = InitiatingEndpoint(lambda: WebSocketTransport(url), EndpointOptions(ping_interval=5))
    endpoint.add_listener('message', on_message)
    endpoint.add_listener('signal-timeout', on_silent)
    endpoint.initialize_connection()
"""
import json
import logging

from livesocket.config.config import EndpointOptions
from livesocket.heartbeat import HeartbeatCore
from livesocket.multiplexer import EventMultiplexer
from livesocket.policy import AdaptiveIntervalPolicy, FixedIntervalPolicy
from livesocket.reconnection import ReconnectionController
from livesocket.support.retry_strategy import ExponentialBackoffStrategy
from livesocket.support.scheduler import AsyncioScheduler
from livesocket.transport.base import CLOSE, OPEN, TransportError, TransportNotAttachedError

logger = logging.getLogger(__name__)


class Endpoint:
    """
    The behavior shared by both heartbeat roles.

    :param policy: the heartbeat timing of the role
    :param transport_factory: called with no arguments to build a new transport. Without one,
        the endpoint does not reconnect.
    :param options: an EndpointOptions instance. Defaults apply when None.
    :param scheduler: the timers used for heartbeats and reconnection. Defaults to the running
        asyncio event loop.
    """

    def __init__(self, policy, transport_factory=None, options: EndpointOptions=None, scheduler=None):
        self.options = (options or EndpointOptions()).check()
        self.scheduler = scheduler or AsyncioScheduler()
        self.transport_factory = transport_factory
        self.multiplexer = EventMultiplexer()
        self.core = HeartbeatCore(self.multiplexer, self.scheduler, policy)
        self.multiplexer.heartbeat_received = self.core.signal_received
        backoff = ExponentialBackoffStrategy(self.options.min_reconnect_delay, self.options.max_reconnect_delay)
        self.reconnection = ReconnectionController(self.scheduler, backoff, self._build_transport)
        self._closing = False
        self.multiplexer.add_hook(OPEN, self._transport_opened)
        self.multiplexer.add_hook(CLOSE, self._transport_closed)

    @property
    def transport(self):
        return self.multiplexer.transport

    @property
    def is_timed_out(self):
        return self.core.is_timed_out

    @property
    def current_reconnect_delay(self):
        """ the wait before the next reconnection attempt, in seconds """
        return self.reconnection.current_delay

    def initialize_connection(self):
        """
        Builds a new transport with the transport factory and makes it the endpoint's transport.
        The previous transport is closed if it is still open, and a scheduled reconnection attempt
        is cancelled.
        :return: the new transport
        :raises TransportError: when there is no transport factory
        """
        self.reconnection.stop_reconnection_attempt()
        return self._build_transport()

    def _build_transport(self):
        if self.transport_factory is None:
            raise TransportError("%s has no transport factory" % type(self).__name__)
        self._closing = False
        transport = self.transport_factory()
        self.attach(transport)
        return transport

    def attach(self, transport):
        """ makes the given transport the endpoint's transport. Listeners move over from the previous one. """
        previous = self.transport
        self.multiplexer.attach(transport)
        if previous is not None and previous is not transport and previous.is_open:
            previous.close()

    def send(self, payload):
        """
        Sends a frame on the current transport.
        :param payload: str for a text frame, bytes for a binary frame
        :raises TransportNotAttachedError: before the first transport is attached
        """
        transport = self.transport
        if transport is None:
            raise TransportNotAttachedError("no transport to send on")
        transport.send(payload)

    def send_event(self, event_type, data=None):
        """
        Sends a JSON text frame: the data with an 'evt' member naming the event type.
        The data passed in is not modified.
        """
        payload = dict(data) if data else {}
        payload['evt'] = event_type
        self.send(json.dumps(payload))

    def add_listener(self, kind, callback):
        """
        :param kind: a transport event ('open', 'message', 'close', 'error') or a heartbeat notification
            ('signal-timeout', 'signal-recovered', 'signal-sent', 'signal-received')
        :param callback: transport event listeners are called with the event,
            notification listeners with no arguments
        """
        self.multiplexer.add_listener(kind, callback)

    def remove_listener(self, kind, callback):
        self.multiplexer.remove_listener(kind, callback)

    def remove_all_listeners(self):
        self.multiplexer.remove_all_listeners()

    def stop_reconnection_attempt(self):
        self.reconnection.stop_reconnection_attempt()

    def close(self, code=1000, reason=''):
        """
        Shuts the endpoint down: timers are stopped and the transport is closed without a
        reconnection. initialize_connection() may be called again afterwards.
        """
        self._closing = True
        self._stop_timers()
        self.reconnection.stop_reconnection_attempt()
        transport = self.transport
        if transport is not None:
            transport.close(code, reason)

    def _stop_timers(self):
        self.core.cancel_timeout()

    def _transport_opened(self, event):
        logger.info("transport opened: %r" % event.transport)
        self.reconnection.transport_opened()
        self.core.clear_timed_out()

    def _transport_closed(self, event):
        logger.info("transport closed: %r, code %s %s" % (event.transport, event.code, event.reason))
        self._stop_timers()
        if self._closing or self.transport_factory is None:
            return
        self.reconnection.transport_closed()


class InitiatingEndpoint(Endpoint):
    """
    Sends a heartbeat every ping_interval seconds while the transport is open, and reports a
    timeout when a heartbeat is not answered within ping_timeout seconds.

    :param transport_factory: builds each transport, including the first one.
        Call initialize_connection() to connect.
    """

    def __init__(self, transport_factory, options: EndpointOptions=None, scheduler=None):
        options = options or EndpointOptions()
        super().__init__(FixedIntervalPolicy(options.ping_timeout), transport_factory, options, scheduler)
        self._ping_interval = self.options.ping_interval
        self._pending_ping = None

    @property
    def ping_interval(self):
        return self._ping_interval

    def reconfigure(self, ping_interval, immediately=False):
        """
        Changes the heartbeat interval.

        The heartbeat already scheduled is sent at the old interval and the new interval applies
        after it. Going from 0 to a positive interval starts sending straight away, and setting 0
        stops sending after the scheduled heartbeat.

        :param ping_interval: seconds between heartbeats, 0 to stop
        :param immediately: restart the schedule at the new interval now
        """
        if ping_interval < 0:
            raise ValueError("ping_interval must not be negative, got %r" % ping_interval)
        previous = self._ping_interval
        self._ping_interval = ping_interval
        if immediately:
            self.restart_ping_interval()
        elif previous == 0 and ping_interval > 0:
            self._start_ping_interval()

    def restart_ping_interval(self):
        self.stop_ping_immediately()
        self._start_ping_interval()

    def stop_ping_immediately(self):
        """ cancels the scheduled heartbeat without waiting for it """
        if self._pending_ping is not None:
            self.scheduler.cancel(self._pending_ping)
            self._pending_ping = None

    def _start_ping_interval(self):
        transport = self.transport
        if self._ping_interval > 0 and self._pending_ping is None and transport is not None and transport.is_open:
            self._pending_ping = self.scheduler.schedule(self._ping_interval, self._ping)

    def _ping(self):
        self._pending_ping = None
        self.core.send_signal()
        self._start_ping_interval()

    def _stop_timers(self):
        self.stop_ping_immediately()
        super()._stop_timers()

    def _transport_opened(self, event):
        super()._transport_opened(event)
        self._start_ping_interval()


class ResponsiveEndpoint(Endpoint):
    """
    Answers each heartbeat received, and reports a timeout when the next heartbeat does not
    arrive within ping_window_threshold times the average gap between heartbeats.

    :param transport: an existing transport, e.g. one accepted by a server
    :param transport_factory: builds a replacement when the transport closes. Without one
        the endpoint stays closed.
    """

    def __init__(self, transport=None, transport_factory=None, options: EndpointOptions=None, scheduler=None):
        options = options or EndpointOptions()
        super().__init__(AdaptiveIntervalPolicy(options.ping_window_threshold), transport_factory, options,
                         scheduler)
        if transport is not None:
            self.attach(transport)

    @property
    def smoothed_interval(self):
        """ the weighted average gap between received heartbeats, in seconds """
        return self.core.state.smoothed_interval
