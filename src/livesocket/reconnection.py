import logging

from livesocket.support.retry_strategy import RetryStrategy
from livesocket.transport.base import TransportError

logger = logging.getLogger(__name__)


class ReconnectionController:
    """
    Rebuilds a transport after it closes, waiting longer after each attempt that does not
    lead to an open transport.

    The controller does not watch the transport itself. The owner calls transport_closed()
    and transport_opened() from its close and open listeners.

    :param scheduler: used to wait before each attempt
    :param retry_strategy: supplies the delay, and is told about failures and successes.
        Reconnection is disabled when the strategy is not enabled.
    :param reconnect: called with no arguments to build and attach a new transport. Any exception
        it raises counts as a failed attempt, and the next attempt is scheduled.
    """

    def __init__(self, scheduler, retry_strategy: RetryStrategy, reconnect):
        self.scheduler = scheduler
        self.retry_strategy = retry_strategy
        self.reconnect = reconnect
        self._pending_attempt = None

    @property
    def pending(self):
        """ True while an attempt is scheduled """
        return self._pending_attempt is not None

    @property
    def current_delay(self):
        return self.retry_strategy()

    def transport_closed(self):
        self._cancel_pending()
        if not self.retry_strategy.enabled:
            logger.debug("reconnection disabled")
            return
        delay = self.retry_strategy()
        logger.info("reconnecting in %.3fs" % delay)
        self._pending_attempt = self.scheduler.schedule(delay, self._attempt)

    def transport_opened(self):
        self.stop_reconnection_attempt()

    def stop_reconnection_attempt(self):
        """ cancels a scheduled attempt, and starts over from the shortest delay """
        self.retry_strategy.reset()
        self._cancel_pending()

    def _cancel_pending(self):
        if self._pending_attempt is not None:
            self.scheduler.cancel(self._pending_attempt)
            self._pending_attempt = None

    def _attempt(self):
        self._pending_attempt = None
        # counts as failed until the new transport reports it is open
        self.retry_strategy.failed()
        try:
            self.reconnect()
        except TransportError as e:
            logger.debug("reconnection attempt failed: %s" % e)
            self.transport_closed()
        except Exception as e:
            logger.debug("reconnection attempt failed: %r" % e, exc_info=True)
            self.transport_closed()
