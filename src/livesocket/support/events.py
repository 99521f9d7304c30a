class EventSource(object):
    """
    A set of handlers that are all called when the event fires.

    Handlers are compared by equality, so a bound method added twice is only
    registered once, and removing a handler that was never added does nothing.
    """

    def __init__(self):
        self._handlers = []

    def __iadd__(self, handler):
        return self.add(handler)

    def __isub__(self, handler):
        return self.remove(handler)

    def __contains__(self, handler):
        return handler in self._handlers

    def __len__(self):
        return len(self._handlers)

    def add(self, handler):
        if handler not in self._handlers:
            self._handlers.append(handler)
        return self

    def remove(self, handler):
        if handler in self._handlers:
            self._handlers.remove(handler)
        return self

    def clear(self):
        self._handlers = []

    def handlers(self):
        return tuple(self._handlers)

    def fire(self, *args, **kwargs):
        self._fire(*args, **kwargs)

    def _fire(self, *args, **kwargs):
        # handlers may add or remove handlers while being notified
        for handler in self.handlers():
            handler(*args, **kwargs)
