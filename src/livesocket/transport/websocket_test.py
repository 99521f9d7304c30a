import asyncio
import unittest
from unittest.mock import AsyncMock, Mock, patch

from hamcrest import assert_that, calling, contains_string, instance_of, is_, raises
from websockets.exceptions import ConnectionClosedError, InvalidURI

from livesocket.transport.base import CLOSE, ERROR, MESSAGE, OPEN, TransportClosedError, TransportError
from livesocket.transport.websocket import AcceptedWebSocketTransport, WebSocketTransport


class FakeConnection:
    """ stands in for a websockets connection: yields the queued frames, then closes """

    def __init__(self, frames=(), close_code=1000, close_reason='', error=None):
        self.frames = list(frames)
        self.close_code = close_code
        self.close_reason = close_reason
        self.error = error
        self.send = AsyncMock()
        self.close = AsyncMock()
        self.remote_address = ('127.0.0.1', 50000)

    async def _frames(self):
        for frame in self.frames:
            await asyncio.sleep(0)
            yield frame
        if self.error is not None:
            raise self.error

    def __aiter__(self):
        return self._frames()


def record(transport):
    events = []
    for kind in (OPEN, MESSAGE, CLOSE, ERROR):
        transport.add_listener(kind, events.append)
    return events


class AcceptedWebSocketTransportTest(unittest.IsolatedAsyncioTestCase):

    async def test_serve_fires_open_messages_and_close(self):
        connection = FakeConnection([b'\x00', 'hello'], 1001, 'going away')
        sut = AcceptedWebSocketTransport(connection)
        events = record(sut)
        assert_that(sut.is_open, is_(False))
        await sut.serve()
        assert_that([e.kind for e in events], is_([OPEN, MESSAGE, MESSAGE, CLOSE]))
        assert_that(events[2].data, is_('hello'))
        assert_that((events[3].code, events[3].reason), is_((1001, 'going away')))
        assert_that(sut.is_open, is_(False))

    async def test_abnormal_close_reports_error(self):
        connection = FakeConnection(close_code=1006, error=ConnectionClosedError(None, None))
        sut = AcceptedWebSocketTransport(connection)
        events = record(sut)
        await sut.serve()
        assert_that([e.kind for e in events], is_([OPEN, ERROR, CLOSE]))

    async def test_send_while_open(self):
        connection = FakeConnection()
        sut = AcceptedWebSocketTransport(connection)
        assert_that(calling(sut.send).with_args(b'x'), raises(TransportClosedError))
        sut.add_listener(OPEN, lambda e: sut.send(b'\x00'))
        await sut.serve()
        await asyncio.sleep(0)
        connection.send.assert_awaited_once_with(b'\x00')

    async def test_close_closes_connection(self):
        connection = FakeConnection(['a', 'b'])
        sut = AcceptedWebSocketTransport(connection)
        sut.add_listener(MESSAGE, lambda e: sut.close(4001, 'enough'))
        await sut.serve()
        await asyncio.sleep(0)
        connection.close.assert_awaited_with(4001, 'enough')

    async def test_send_failure_is_logged(self):
        connection = FakeConnection()
        connection.send.side_effect = OSError("broken pipe")
        sut = AcceptedWebSocketTransport(connection)
        sut._connection = connection
        with self.assertLogs('livesocket.transport.websocket', 'WARNING'):
            sut.send('x')
            await asyncio.sleep(0.01)

    async def test_failing_listener_does_not_stop_the_pump(self):
        connection = FakeConnection(['boom', 'after'], 1000, 'done')
        sut = AcceptedWebSocketTransport(connection)
        seen = []

        def on_message(event):
            seen.append(event.data)
            if event.data == 'boom':
                raise RuntimeError("app bug")
        sut.add_listener(MESSAGE, on_message)
        on_close = Mock()
        sut.add_listener(CLOSE, on_close)
        with self.assertLogs('livesocket.transport.websocket', 'ERROR'):
            await sut.serve()
        assert_that(seen, is_(['boom', 'after']))
        on_close.assert_called_once()
        assert_that(sut.is_open, is_(False))

    async def test_failing_open_listener(self):
        connection = FakeConnection(['hi'])
        sut = AcceptedWebSocketTransport(connection)
        events = record(sut)
        sut.add_listener(OPEN, Mock(side_effect=ValueError("bad")))
        with self.assertLogs('livesocket.transport.websocket', 'ERROR'):
            await sut.serve()
        assert_that([e.kind for e in events], is_([OPEN, MESSAGE, CLOSE]))

    async def test_close_task_is_kept_until_done(self):
        connection = FakeConnection()
        sut = AcceptedWebSocketTransport(connection)
        sut._connection = connection
        sut.close(1000, 'bye')
        assert_that(len(sut._tasks), is_(1))
        await asyncio.sleep(0.01)
        assert_that(len(sut._tasks), is_(0))
        connection.close.assert_awaited_once_with(1000, 'bye')

    async def test_close_failure_is_logged(self):
        connection = FakeConnection()
        connection.close.side_effect = OSError("reset")
        sut = AcceptedWebSocketTransport(connection)
        sut._connection = connection
        with self.assertLogs('livesocket.transport.websocket', 'WARNING') as logs:
            sut.close()
            await asyncio.sleep(0.01)
        assert_that(logs.output[0], contains_string('close on'))


class WebSocketTransportNoLoopTest(unittest.TestCase):

    def test_needs_running_loop(self):
        assert_that(calling(WebSocketTransport).with_args('ws://localhost:1'), raises(TransportError))


class WebSocketTransportTest(unittest.IsolatedAsyncioTestCase):

    async def test_connects_and_pumps(self):
        connection = FakeConnection(['hi'])
        with patch('livesocket.transport.websocket.websockets.connect', AsyncMock(return_value=connection)) \
                as connect:
            sut = WebSocketTransport('ws://example:8000/live', open_timeout=5)
            events = record(sut)
            await sut._task
        connect.assert_awaited_once_with('ws://example:8000/live', open_timeout=5)
        assert_that([e.kind for e in events], is_([OPEN, MESSAGE, CLOSE]))

    async def test_connect_failure(self):
        with patch('livesocket.transport.websocket.websockets.connect',
                   AsyncMock(side_effect=ConnectionRefusedError("refused"))):
            sut = WebSocketTransport('ws://example:8000/live')
            events = record(sut)
            await sut._task
        assert_that([e.kind for e in events], is_([ERROR, CLOSE]))
        assert_that(events[0].error, instance_of(ConnectionRefusedError))
        assert_that(events[1].code, is_(1006))

    async def test_invalid_uri(self):
        with patch('livesocket.transport.websocket.websockets.connect',
                   AsyncMock(side_effect=InvalidURI('nope', 'not a websocket URI'))):
            sut = WebSocketTransport('nope')
            events = record(sut)
            await sut._task
        assert_that([e.kind for e in events], is_([ERROR, CLOSE]))

    async def test_close_while_connecting(self):
        started = asyncio.Event()

        async def never_connects(*args, **kwargs):
            started.set()
            await asyncio.sleep(3600)

        with patch('livesocket.transport.websocket.websockets.connect', never_connects):
            sut = WebSocketTransport('ws://example:8000/live')
            on_close = Mock()
            sut.add_listener(CLOSE, on_close)
            await started.wait()
            sut.close(1000, 'cancelled')
            with self.assertRaises(asyncio.CancelledError):
                await sut._task
        assert_that(on_close.call_args[0][0].reason, is_('cancelled'))
        assert_that(sut.is_open, is_(False))

    async def test_failing_listener_still_closes(self):
        connection = FakeConnection(['boom', 'after'])
        with patch('livesocket.transport.websocket.websockets.connect', AsyncMock(return_value=connection)):
            sut = WebSocketTransport('ws://example:8000/live')
            on_message = Mock(side_effect=RuntimeError("app bug"))
            sut.add_listener(MESSAGE, on_message)
            on_close = Mock()
            sut.add_listener(CLOSE, on_close)
            with self.assertLogs('livesocket.transport.websocket', 'ERROR'):
                await sut._task
        assert_that([c[0][0].data for c in on_message.call_args_list], is_(['boom', 'after']))
        on_close.assert_called_once()
        assert_that(sut.is_open, is_(False))
