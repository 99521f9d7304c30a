"""
Live sockets

Keeps a message socket usable across silent peers and dropped connections.

- Transport: a full-duplex channel that delivers discrete text or binary frames, and reports
  open, message, close and error events. Adapters for websockets (client and accepted server
  connections) and an in-memory loopback pair.
- EventMultiplexer: holds the application's listeners and binds them to whichever transport
  is current. Heartbeat frames (a single zero byte) are taken out of the message stream here.
- HeartbeatCore: sends and receives heartbeats, keeps one timeout armed and reports
  signal-timeout / signal-recovered. Timing is left to a policy:
    - FixedIntervalPolicy - every heartbeat sent must be answered within ping_timeout.
    - AdaptiveIntervalPolicy - answer each heartbeat, and expect the next one within a multiple
      of the average gap.
- ReconnectionController - rebuilds the transport after it closes, with exponential backoff.
- InitiatingEndpoint / ResponsiveEndpoint - the two roles, put together from the above.


## Timing

All timers go through a Scheduler. AsyncioScheduler uses the running event loop, and
VirtualScheduler is a clock that only moves when told to, which the tests use.
Durations are always seconds.

Nothing here blocks, and there is no locking. Everything for one endpoint is expected to run on
one event loop.


## Liveness and connection are separate

A heartbeat timeout does not close the transport. It is a notification, and the application
decides what to do about it. Reconnection only starts when the transport itself reports that
it has closed.
"""
