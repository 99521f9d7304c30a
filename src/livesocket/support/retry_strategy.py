class RetryStrategy:
    """ Decides how long to wait before the next attempt. The base strategy retries immediately. """

    def __call__(self):
        return 0

    @property
    def enabled(self):
        return True

    def failed(self):
        """ notes that an attempt did not lead to a connection """

    def reset(self):
        """ notes that a connection was established """


class ExponentialBackoffStrategy(RetryStrategy):
    """
    Doubles the delay after every failed attempt, up to max_delay.

    :param min_delay: The delay in seconds used for the first attempt, and again after each success.
    :param max_delay: The largest delay in seconds. A negative value disables retrying altogether.
    """

    def __init__(self, min_delay, max_delay):
        if min_delay < 0:
            raise ValueError("min_delay must not be negative: %s" % min_delay)
        if 0 <= max_delay < min_delay:
            raise ValueError("max_delay %s is less than min_delay %s" % (max_delay, min_delay))
        self.min_delay = min_delay
        self.max_delay = max_delay
        self.current_delay = min_delay

    def __call__(self):
        """ the delay before the next attempt """
        return self.current_delay

    def __repr__(self):
        return "ExponentialBackoffStrategy(min_delay=%r, max_delay=%r, current_delay=%r)" % \
            (self.min_delay, self.max_delay, self.current_delay)

    @property
    def enabled(self):
        return self.max_delay >= 0

    def failed(self):
        if self.enabled:
            self.current_delay = min(self.max_delay, self.current_delay * 2)

    def reset(self):
        self.current_delay = self.min_delay
