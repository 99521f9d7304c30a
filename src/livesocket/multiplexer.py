"""
Listener bookkeeping that outlives the transport.

Application code registers listeners once with the multiplexer. They are bound to whichever
transport is current, and bound again to each replacement transport, so a reconnect is
invisible to the application. Heartbeat frames are taken out of the message stream before
the application's message listeners see it.
"""
import logging
from collections import defaultdict

from livesocket.transport.base import TRANSPORT_EVENTS, MESSAGE

logger = logging.getLogger(__name__)

SIGNAL_TIMEOUT = 'signal-timeout'
SIGNAL_RECOVERED = 'signal-recovered'
SIGNAL_SENT = 'signal-sent'
SIGNAL_RECEIVED = 'signal-received'

# notifications raised by the heartbeat, never by a transport
INTERNAL_EVENTS = (SIGNAL_TIMEOUT, SIGNAL_RECOVERED, SIGNAL_SENT, SIGNAL_RECEIVED)

# the reserved heartbeat frame: one binary byte with value zero
HEARTBEAT_FRAME = b'\x00'


def is_heartbeat_frame(data):
    """
    >>> is_heartbeat_frame(b'\\x00')
    True
    >>> is_heartbeat_frame(b'\\x00\\x00'), is_heartbeat_frame(b'\\x01'), is_heartbeat_frame('\\x00')
    (False, False, False)
    """
    return isinstance(data, (bytes, bytearray, memoryview)) and len(data) == 1 and data[0] == 0


def is_pass_through(kind):
    return kind in TRANSPORT_EVENTS


class EventMultiplexer:
    """
    Keeps the listeners for transport events and internal heartbeat notifications.

    :param heartbeat_received: called with no arguments each time a heartbeat frame arrives
    """

    def __init__(self, heartbeat_received=None):
        self.heartbeat_received = heartbeat_received
        self._transport = None
        self._registry = defaultdict(dict)      # kind -> {callback: callback}
        self._hooks = []                        # (kind, callback) owned by the endpoint

    @property
    def transport(self):
        return self._transport

    def listeners(self, kind):
        return tuple(self._registry[kind])

    def add_listener(self, kind, callback):
        self._check_kind(kind)
        registered = self._registry[kind]
        if callback in registered:
            return
        registered[callback] = callback
        if is_pass_through(kind) and kind != MESSAGE and self._transport is not None:
            self._transport.add_listener(kind, callback)

    def remove_listener(self, kind, callback):
        self._check_kind(kind)
        registered = self._registry.get(kind)
        if not registered or callback not in registered:
            return
        bound = registered.pop(callback)
        if is_pass_through(kind) and kind != MESSAGE and self._transport is not None:
            self._transport.remove_listener(kind, bound)

    def remove_all_listeners(self):
        """ removes every listener added with add_listener(). Hooks stay in place. """
        for kind, registered in list(self._registry.items()):
            for callback in list(registered):
                self.remove_listener(kind, callback)

    def add_hook(self, kind, callback):
        """
        Binds a callback to the transport events of every transport, like add_listener(),
        but it is not affected by remove_listener() or remove_all_listeners().
        """
        if not is_pass_through(kind):
            raise ValueError("hooks are only for transport events, not '%s'" % kind)
        self._hooks.append((kind, callback))
        if self._transport is not None:
            self._transport.add_listener(kind, callback)

    def attach(self, transport):
        """ replaces the current transport, moving every listener over to the new one """
        previous = self._transport
        if previous is not None:
            for kind, callback in self._bindings():
                previous.remove_listener(kind, callback)
        self._transport = transport
        logger.debug("attached %r, replacing %r" % (transport, previous))
        self.rebind_all()

    def rebind_all(self):
        """ binds the message filter, the hooks and all transport listeners to the current transport """
        transport = self._transport
        if transport is None:
            return
        for kind, callback in self._bindings():
            transport.add_listener(kind, callback)

    def _bindings(self):
        yield MESSAGE, self._filter_message
        for kind, callback in self._hooks:
            yield kind, callback
        for kind in TRANSPORT_EVENTS:
            if kind != MESSAGE:
                for callback in self._registry.get(kind, {}).values():
                    yield kind, callback

    def dispatch_internal(self, kind):
        if kind not in INTERNAL_EVENTS:
            raise ValueError("'%s' is not an internal event" % kind)
        for callback in tuple(self._registry.get(kind, {}).values()):
            callback()

    def _filter_message(self, event, *args):
        """ diverts heartbeat frames, and passes everything else on to the message listeners unchanged """
        if is_heartbeat_frame(event.data):
            if self.heartbeat_received is not None:
                self.heartbeat_received()
            return
        for callback in tuple(self._registry.get(MESSAGE, {}).values()):
            callback(event, *args)

    @staticmethod
    def _check_kind(kind):
        if not is_pass_through(kind) and kind not in INTERNAL_EVENTS:
            raise ValueError("unknown event kind '%s'" % kind)
