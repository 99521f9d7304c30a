from abc import abstractmethod

from livesocket.support.events import EventSource

OPEN = 'open'
MESSAGE = 'message'
CLOSE = 'close'
ERROR = 'error'

# the lifecycle and message events every transport reports
TRANSPORT_EVENTS = (OPEN, MESSAGE, CLOSE, ERROR)


class TransportError(Exception):
    """ Indicates an error condition with a transport. """


class TransportNotAttachedError(TransportError):
    """ An operation needs a transport but none has been created yet. """


class TransportClosedError(TransportError):
    """ The transport is not open. """


class TransportEvent:
    """ base class for transport events. """
    kind = None

    def __init__(self, transport):
        self.transport = transport


class OpenEvent(TransportEvent):
    """ The transport has connected and can send. """
    kind = OPEN


class MessageEvent(TransportEvent):
    """ A frame has arrived. data is bytes for a binary frame and str for a text frame. """
    kind = MESSAGE

    def __init__(self, transport, data):
        super().__init__(transport)
        self.data = data

    @property
    def binary(self):
        return isinstance(self.data, (bytes, bytearray, memoryview))


class CloseEvent(TransportEvent):
    """ The transport was closed, either by this side or by the peer. """
    kind = CLOSE

    def __init__(self, transport, code=None, reason=''):
        super().__init__(transport)
        self.code = code
        self.reason = reason


class ErrorEvent(TransportEvent):
    """ The underlying connection reported an error. """
    kind = ERROR

    def __init__(self, transport, error):
        super().__init__(transport)
        self.error = error


def check_kind(kind):
    if kind not in TRANSPORT_EVENTS:
        raise ValueError("unknown transport event kind '%s'" % kind)


class Transport:
    """
    A full-duplex message connection. Frames are delivered to the message listeners,
    and changes in the connection state to the open, close and error listeners.

    Transports are single use: once closed, a new transport is created to connect again.
    """

    @abstractmethod
    def add_listener(self, kind, callback):
        """ registers callback(event) for the given kind of event. Adding a callback twice has no effect. """
        raise NotImplementedError

    @abstractmethod
    def remove_listener(self, kind, callback):
        """ unregisters a callback. Does nothing if it was not registered. """
        raise NotImplementedError

    @abstractmethod
    def send(self, data):
        """
        Sends a frame - bytes for a binary frame or str for a text frame.
        Sending does not wait for the frame to be written.
        """
        raise NotImplementedError

    @abstractmethod
    def close(self, code=1000, reason=''):
        raise NotImplementedError

    @property
    @abstractmethod
    def is_open(self) -> bool:
        raise NotImplementedError


class AbstractTransport(Transport):
    """ Keeps the listeners for each kind of event. Subclasses report what happens by calling the _fire methods. """

    def __init__(self):
        self.events = {kind: EventSource() for kind in TRANSPORT_EVENTS}

    def add_listener(self, kind, callback):
        check_kind(kind)
        self.events[kind].add(callback)

    def remove_listener(self, kind, callback):
        check_kind(kind)
        self.events[kind].remove(callback)

    def listeners(self, kind):
        return self.events[kind].handlers()

    def _fire(self, event: TransportEvent):
        self.events[event.kind].fire(event)

    def _fire_open(self):
        self._fire(OpenEvent(self))

    def _fire_message(self, data):
        self._fire(MessageEvent(self, data))

    def _fire_close(self, code=None, reason=''):
        self._fire(CloseEvent(self, code, reason))

    def _fire_error(self, error):
        self._fire(ErrorEvent(self, error))

    def check_open(self):
        if not self.is_open:
            raise TransportClosedError("transport %s is not open" % self)
