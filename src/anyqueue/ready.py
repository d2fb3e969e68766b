
import collections
import threading


class Gate:
    """ Hold back operations until a provider's backend is ready. Before
        :func:`fire` is called, actions passed to :func:`when_ready` are
        remembered in the order received; :func:`fire` hands all of them
        to the *scheduler*, in that order, and every subsequent action is
        handed to the *scheduler* directly.

        The *scheduler* is anything with a ``schedule(action)`` method,
        normally the :class:`anyqueue.scheduler.Scheduler` of the owning
        queue. The gate never invokes an action itself.
    """

    def __init__(self, scheduler):

        self.scheduler = scheduler
        self.ready = False
        self._firing = False
        self._deferred = collections.deque()
        self._lock = threading.Lock()


    def when_ready(self, action):
        """ Run *action* on the scheduler once the backend is ready.
        """

        with self._lock:
            if self.ready == False:
                self._deferred.append(action)
                return

        self.scheduler.schedule(action)


    def fire(self):
        """ Mark the backend as ready and release any deferred actions.
            Returns True the first time it is called, False thereafter;
            readiness only fires once.
        """

        with self._lock:
            if self.ready == True or self._firing == True:
                return False

            self._firing = True

        # A refused action is reported to error listeners, which may call
        # when_ready() again; the scheduler is never invoked with the lock
        # held. Actions deferred during a hand-off go out in the next batch,
        # and self.ready only becomes True once the deferred queue is empty.

        while True:
            with self._lock:
                if not self._deferred:
                    self.ready = True
                    self._firing = False
                    break

                batch = list(self._deferred)
                self._deferred.clear()

            for action in batch:
                self.scheduler.schedule(action)

        return True


    def pending(self):
        """ Return the number of actions waiting for readiness.
        """

        with self._lock:
            return len(self._deferred)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
