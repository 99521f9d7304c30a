"""
Transports over the websockets asyncio library.

- WebSocketTransport opens a client connection to a URL.
- AcceptedWebSocketTransport wraps a connection accepted by a websockets server.

Both pump inbound frames to the message listeners from a task on the running event loop,
and must be created while that loop is running.
"""
import asyncio
import logging

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from livesocket.transport.base import AbstractTransport, TransportError

logger = logging.getLogger(__name__)


class WebSocketTransportBase(AbstractTransport):

    def __init__(self):
        super().__init__()
        self._connection = None
        self._closed = False
        self._tasks = set()     # sends and closes in flight

    @property
    def is_open(self):
        return self._connection is not None and not self._closed

    def send(self, data):
        self.check_open()
        self._spawn(self._connection.send(data), 'send')

    def close(self, code=1000, reason=''):
        if self._connection is not None and not self._closed:
            self._spawn(self._connection.close(code, reason), 'close')

    def _spawn(self, coroutine, action):
        task = asyncio.get_running_loop().create_task(coroutine)
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._done(t, action))
        return task

    def _done(self, task, action):
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning("%s on %r failed: %s" % (action, self, task.exception()))

    def _notify(self, fire, *args):
        """ runs the listeners through fire(*args). A failing listener is logged and does not stop the pump. """
        try:
            fire(*args)
        except Exception as e:
            logger.exception("listener failed on %r: %s" % (self, e))

    async def _pump(self, connection):
        """ delivers frames until the connection closes, then fires the close event """
        try:
            async for data in connection:
                self._notify(self._fire_message, data)
        except ConnectionClosed as e:
            # the peer went away without a clean close handshake
            self._notify(self._fire_error, e)
        finally:
            self._finish(connection.close_code, connection.close_reason or '')

    def _finish(self, code, reason):
        if not self._closed:
            self._closed = True
            logger.info("websocket %r closed: %s %s" % (self, code, reason))
            self._notify(self._fire_close, code, reason)


class WebSocketTransport(WebSocketTransportBase):
    """
    A client connection to a websocket server.

    Connecting starts when the transport is created. Listeners added before the
    event loop next runs see the open event, or the error and close events if
    the server cannot be reached.

    :param url: the ws:// or wss:// address of the server
    :param connect_args: further keyword arguments for websockets.connect()
    """

    def __init__(self, url, **connect_args):
        super().__init__()
        self.url = url
        self._connect_args = connect_args
        self._close_request = None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as e:
            raise TransportError("websocket transport to %s needs a running event loop" % url) from e
        self._task = loop.create_task(self._run())

    def __repr__(self):
        return "WebSocketTransport(%s)" % self.url

    async def _run(self):
        try:
            connection = await websockets.connect(self.url, **self._connect_args)
        except asyncio.CancelledError:
            code, reason = self._close_request or (1000, '')
            self._finish(code, reason)
            raise
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            logger.info("unable to connect to %s: %s" % (self.url, e))
            self._notify(self._fire_error, e)
            self._finish(1006, str(e))
            return
        self._connection = connection
        logger.info("opened websocket to %s" % self.url)
        self._notify(self._fire_open)
        await self._pump(connection)

    def close(self, code=1000, reason=''):
        if self._connection is None and not self._closed:
            # still connecting
            self._close_request = (code, reason)
            self._task.cancel()
        else:
            super().close(code, reason)


class AcceptedWebSocketTransport(WebSocketTransportBase):
    """
    The server side of a websocket connection. The connection is already open;
    the open event fires when serve() starts.

        async def handler(connection):
            transport = AcceptedWebSocketTransport(connection)
            options = EndpointOptions(ping_interval=5, max_reconnect_delay=-1)
            endpoint = InitiatingEndpoint(lambda: transport, options)
            endpoint.initialize_connection()
            await transport.serve()
    """

    def __init__(self, connection):
        super().__init__()
        self._accepted = connection

    def __repr__(self):
        return "AcceptedWebSocketTransport(%s)" % (getattr(self._accepted, 'remote_address', None),)

    async def serve(self):
        """ runs until the peer disconnects """
        self._connection = self._accepted
        self._notify(self._fire_open)
        await self._pump(self._accepted)
