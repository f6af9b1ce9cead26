import logging


logger = logging.getLogger(__name__)


class TimerHandle:
    """Cancellable reference to a running ticker."""

    def __init__(self):
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


class SocketIOTicker:
    """Run a callback once per interval on a Socket.IO background task.

    The callback receives the handle it was started with. Under eventlet or
    gevent the task is a green thread; in threading mode it is an OS thread
    and may run alongside socket handlers, so the callback must take the
    game's lock itself. Each tick gets its own Flask app context (database
    session, config).
    """

    def __init__(self, socketio, app, interval: float = 1.0):
        self._socketio = socketio
        self._app = app
        self._interval = interval

    def start(self, callback) -> TimerHandle:
        handle = TimerHandle()
        self._socketio.start_background_task(self._worker, handle, callback)
        return handle

    def _worker(self, handle: TimerHandle, callback) -> None:
        while not handle.cancelled:
            self._socketio.sleep(self._interval)
            # cancelled while sleeping: the tick belongs to a stale timer
            if handle.cancelled:
                break
            with self._app.app_context():
                callback(handle)
        logger.debug("[timer-exit] handle=%s", id(handle))
