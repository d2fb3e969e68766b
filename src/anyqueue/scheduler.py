
import logging
import queue
import threading

from .errors import QueueClosedError

logger = logging.getLogger(__name__)


class _SchedulerWake(RuntimeError):
    pass


class Scheduler:
    """ Background thread that runs deferred actions for a single
        :class:`anyqueue.Queue`, one at a time, in the order they were
        scheduled. Scheduling an action never runs it in the caller's
        stack frame; it runs on the next pass of the background thread.

        Any exception raised by an action is handed to *on_error*, which is
        expected to relay it to the error listeners of the owning queue.
    """

    def __init__(self, on_error, name=None):

        self.on_error = on_error
        self.queue = queue.SimpleQueue()
        self.shutdown = False
        self._lock = threading.Lock()

        if name is None:
            name = 'anyqueue.Scheduler.' + str(id(self))

        self.thread = threading.Thread(target=self.run, name=name)
        self.thread.daemon = True
        self.thread.start()


    def schedule(self, action):
        """ Arrange for *action* to be invoked with no arguments on the
            background thread. Once :func:`stop` has been called, further
            actions are refused; a :class:`QueueClosedError` is reported
            via *on_error* instead.
        """

        with self._lock:
            if self.shutdown == False:
                self.queue.put(action)
                return

        logger.debug('scheduler stopped, refusing %r', action)
        self.on_error(QueueClosedError('queue is closed'))


    def run(self):

        while True:
            action = self.queue.get()

            if isinstance(action, _SchedulerWake):
                break

            try:
                action()
            except Exception as exc:
                self.on_error(exc)


    def stop(self):
        """ Refuse any further actions. Actions already scheduled still run,
            after which the background thread exits.
        """

        with self._lock:
            if self.shutdown == True:
                return
            self.shutdown = True
            self.queue.put(_SchedulerWake())


    def join(self, timeout=None):
        self.thread.join(timeout)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
