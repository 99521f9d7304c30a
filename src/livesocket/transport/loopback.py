"""
In-memory transports. Two LoopbackTransport instances wired together behave like
both ends of a socket: frames sent on one arrive as message events on the other,
and closing either end closes both.

Delivery is synchronous - send() returns after the peer's listeners have run.
"""
import logging

from livesocket.transport.base import AbstractTransport, TransportClosedError

logger = logging.getLogger(__name__)

CONNECTING, OPEN, CLOSED = 'connecting', 'open', 'closed'


class LoopbackTransport(AbstractTransport):

    def __init__(self, name=None):
        super().__init__()
        self.name = name
        self.peer = None
        self.state = CONNECTING
        self.sent = []      # every frame sent from this end

    def __repr__(self):
        return "LoopbackTransport(%s, %s)" % (self.name, self.state)

    @classmethod
    def pair(cls, names=('a', 'b')):
        """ creates two connected ends. Neither is open until open() is called on either. """
        a, b = cls(names[0]), cls(names[1])
        a.peer, b.peer = b, a
        return a, b

    @property
    def is_open(self):
        return self.state == OPEN

    def open(self):
        """ opens both ends, firing an open event on each """
        for end in (self, self.peer):
            if end is not None and end.state == CONNECTING:
                end.state = OPEN
                end._fire_open()

    def fail(self, error):
        """ simulates a connection error: an error event followed by both ends closing """
        self._fire_error(error)
        self.close(1006, str(error))

    def send(self, data):
        if not self.is_open:
            raise TransportClosedError("%r is not open" % self)
        self.sent.append(data)
        if self.peer is not None and self.peer.is_open:
            self.peer._fire_message(data)

    def close(self, code=1000, reason=''):
        for end in (self, self.peer):
            if end is not None and end.state != CLOSED:
                end.state = CLOSED
                logger.debug("closed %r: %s %s" % (end, code, reason))
                end._fire_close(code, reason)
