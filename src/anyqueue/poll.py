
import logging
import threading
import time
import weakref

logger = logging.getLogger(__name__)


class Poller:
    """ Call the provided *method* repeatedly in a dedicated background
        thread until the *until* predicate returns True. Each call is
        allowed to block for as long as it needs to; the next call does
        not begin until *delay* seconds after the previous one finished.
        A *delay* of zero reschedules immediately, though the thread still
        yields between iterations.

        Cancellation is cooperative: *until* is consulted before every
        iteration, never during one, so an in-flight call always runs to
        completion. Call :func:`wake` after changing the state *until*
        inspects to cut short any delay in progress.

        Any exception raised by *method* is passed to *on_error* and the
        loop carries on. There is at most one background thread per
        :class:`Poller` at any given time.
    """

    def __init__(self, method, until, delay=0, on_error=None, name=None):

        self.reference = _ref(method)
        self.until = until
        self.delay = float(delay or 0)
        self.on_error = on_error
        self.name = name
        self.thread = None
        self.iterations = 0

        self.alarm = threading.Event()
        self._lock = threading.Lock()


    @property
    def running(self):
        with self._lock:
            return self.thread is not None


    def start(self):
        """ Begin polling, unless a background thread is already doing so.
            A thread that is winding down after *until* became True, but
            has not yet observed it, simply keeps going.
        """

        with self._lock:
            if self.thread is not None:
                return

            self.thread = threading.Thread(target=self.run, name=self.name)
            self.thread.daemon = True
            self.thread.start()


    def run(self):

        while True:

            # The exit decision and the release of self.thread are made
            # together so that start() never races a thread on its way out.

            with self._lock:
                if self.until() == True:
                    self.thread = None
                    break

                self.alarm.clear()

            method = self.reference()

            if method is None:
                # The object that owned the method is gone.
                with self._lock:
                    self.thread = None
                break

            try:
                method()
            except Exception as exc:
                if self.on_error is None:
                    logger.exception('unhandled exception while polling')
                else:
                    self.on_error(exc)

            self.iterations += 1
            del method

            if self.delay > 0:
                self.alarm.wait(self.delay)
            else:
                time.sleep(0)

        logger.debug('poller %s exiting after %d iterations', self.name, self.iterations)


    def wake(self):
        self.alarm.set()


    def join(self, timeout=None):
        with self._lock:
            thread = self.thread

        if thread is not None:
            thread.join(timeout)


def _ref(thing):
    """ Return a weak reference to the supplied argument, regardless of
        whether it is a simple object or a bound method.
    """

    try:
        thing.__func__
        thing.__self__
    except AttributeError:
        return weakref.ref(thing)
    else:
        return weakref.WeakMethod(thing)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
