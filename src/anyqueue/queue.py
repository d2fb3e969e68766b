
import dataclasses
import logging
import queue
import threading

from collections.abc import Mapping

from . import config
from . import providers
from .errors import OptionsError, ProviderError
from .options import ConnectionOptions, InboundMessage
from .scheduler import Scheduler

logger = logging.getLogger(__name__)


def connect(target=None, **options):
    """ Return a new :class:`Queue`. The *target* is either a URL of the
        form ``scheme://host[:port]/queue_name``, where the scheme selects
        the provider, a mapping of option names to values, or a
        :class:`ConnectionOptions` instance. Any keyword arguments are
        additional options; values parsed from a URL take precedence over
        them.
    """

    if isinstance(target, ConnectionOptions):
        if options:
            try:
                target = dataclasses.replace(target, **options)
            except TypeError as e:
                raise OptionsError(str(e)) from e

    elif isinstance(target, str):
        target = ConnectionOptions.from_url(target, **options)

    elif isinstance(target, Mapping) or (target is None and options):
        merged = dict(target or ())
        merged.update(options)
        target = ConnectionOptions.from_mapping(merged)

    else:
        raise OptionsError('queue URL or options not set')

    return Queue(target)



class Queue:
    """ A backend-agnostic handle on a single named queue. The backend is
        chosen by the *provider* field of the :class:`ConnectionOptions`
        passed as *options*; the provider begins connecting immediately,
        in the background. Operations requested before the backend is
        ready are held, and performed in order once it is.

        Consumers register callbacks with :func:`on` for one of three
        events:

        * ``'ready'``, invoked with no arguments once the backend is ready.
        * ``'message'``, invoked as ``callback(payload, handle)`` for every
          inbound message. The *handle* is only meaningful to :func:`ack`,
          and is None for providers without explicit acknowledgement.
        * ``'error'``, invoked as ``callback(exception)`` for any failure
          reported by the backend. Errors are discarded if nothing is
          listening for them.

        Registering the first ``'message'`` callback subscribes to the
        backend; removing the last one unsubscribes. See :func:`consumer`
        for an alternative to callbacks.

        :ivar is_ready: True once the backend is ready.
        :ivar options: The :class:`ConnectionOptions` for this queue.
    """

    def __init__(self, options):

        if isinstance(options, Mapping):
            options = ConnectionOptions.from_mapping(options)

        self.options = options
        self.is_ready = False
        self.closed = False

        self._ready = threading.Event()
        self._listeners = dict()
        self._consumers = 0
        self._generation = 0
        self._lock = threading.RLock()

        name = 'anyqueue.Scheduler.' + str(options.queue_name)
        self.scheduler = Scheduler(self.report, name=name)

        try:
            self._provider = providers.create(options.provider, self, options)
        except Exception as e:
            self.scheduler.stop()
            error = ProviderError('Unable to instantiate provider.',
                                  provider=options.provider, inner=e)
            raise error from e

        self._provider.start()


    @property
    def provider(self):
        return self._provider


    def publish(self, payload, extra=None):
        """ Send *payload* to the queue. Bytes are sent base64-encoded,
            strings are sent as-is, and anything else is serialized as JSON.
            *extra* is a dictionary of provider-specific parameters: message
            attributes for ``sqs``, :class:`pika.BasicProperties` fields for
            ``amqp``; it is ignored by ``zmq``.
        """

        self._provider.publish(payload, extra)


    def ack(self, handle):
        """ Acknowledge the message identified by *handle*, as received by
            a ``'message'`` callback.
        """

        self._provider.ack(handle)


    def close(self):
        """ Release backend resources. A subscription that is still active
            should be ended first, by removing all ``'message'`` callbacks.
            Nothing further can be done with this :class:`Queue` once it is
            closed.
        """

        if self.closed == True:
            return

        self.closed = True
        self._provider.close()
        self.scheduler.stop()


    def wait_ready(self, timeout=None):
        """ Block until the backend is ready, or until *timeout* seconds have
            elapsed. Returns True if the backend is ready.
        """

        return self._ready.wait(timeout)


    def on(self, event, callback):
        """ Register *callback* to be invoked for *event*.
        """

        if callable(callback):
            pass
        else:
            raise TypeError('the registered callback must be callable')

        with self._lock:
            try:
                callbacks = self._listeners[event]
            except KeyError:
                callbacks = list()
                self._listeners[event] = callbacks

            callbacks.append(callback)

            if event == 'message':
                self._acquire()


    def once(self, event, callback):
        """ Register *callback* to be invoked for the next *event* only.
        """

        def wrapper(*args):
            self.off(event, wrapper)
            callback(*args)

        wrapper.listener = callback
        self.on(event, wrapper)


    def off(self, event, callback=None):
        """ Remove *callback* from the listeners for *event*; if *callback*
            is not specified, remove all of them.
        """

        with self._lock:
            try:
                callbacks = self._listeners[event]
            except KeyError:
                return

            if callback is None:
                removed = len(callbacks)
                del callbacks[:]
            else:
                removed = 0
                for index, registered in enumerate(callbacks):
                    if registered == callback or getattr(registered, 'listener', None) == callback:
                        del callbacks[index]
                        removed = 1
                        break

            if event == 'message':
                for _ in range(removed):
                    self._release()


    def remove_all_listeners(self, event=None):

        if event is not None:
            self.off(event)
            return

        with self._lock:
            events = list(self._listeners.keys())

            for event in events:
                self.off(event)


    def listener_count(self, event):

        try:
            return len(self._listeners[event])
        except KeyError:
            return 0


    def add_consumer(self, callback):
        """ Equivalent to ``on('message', callback)``.
        """

        self.on('message', callback)


    def remove_consumer(self, callback):
        """ Equivalent to ``off('message', callback)``.
        """

        self.off('message', callback)


    def consumer(self, maxsize=None):
        """ Return a new :class:`Consumer` attached to this queue.
        """

        return Consumer(self, maxsize)


    def _acquire(self):

        self._consumers += 1

        # Subscribing is deferred to the scheduler thread, so that anyone
        # registering a callback immediately after this one is guaranteed to
        # be in place before the first message can arrive.

        if self._consumers == 1:
            logger.debug('first consumer attached to %s', self.options.queue_name)
            generation = self._generation
            self.scheduler.schedule(lambda: self._subscribe(generation))


    def _subscribe(self, generation):

        # The last consumer may have gone again before this tick came
        # around, in which case there is nothing to subscribe for.

        with self._lock:
            if generation != self._generation or self._consumers == 0:
                logger.debug('no consumer left for %s, not subscribing', self.options.queue_name)
                return

            self._provider.subscribe()


    def _release(self):

        self._consumers -= 1

        if self._consumers == 0:
            self._generation += 1
            logger.debug('last consumer detached from %s', self.options.queue_name)
            self._provider.unsubscribe()


    def _emit(self, event, *args):

        # Listeners are read without the lock: a snapshot is all that is
        # needed, and errors may be reported from threads already holding
        # other locks.

        try:
            callbacks = tuple(self._listeners[event])
        except KeyError:
            return

        for callback in callbacks:
            try:
                callback(*args)
            except Exception:
                logger.exception('%s callback failed for %s', event, self.options.queue_name)


    # Methods invoked by the provider.

    def notify_ready(self):
        self.is_ready = True
        self._ready.set()
        self._emit('ready')


    def deliver(self, payload, handle=None):
        self._emit('message', payload, handle)


    def report(self, error):

        if self.listener_count('error') == 0:
            logger.debug('no error listener for %s, dropping: %r', self.options.queue_name, error)
            return

        self._emit('error', error)


# end of class Queue



class Consumer:
    """ A bounded buffer of :class:`InboundMessage` instances received by a
        :class:`Queue`, for callers that would rather pull messages than
        have them pushed to a callback. A :class:`Consumer` counts as one
        ``'message'`` listener for as long as it is open. When the buffer
        holds *maxsize* undelivered messages the backend thread delivering
        them waits for room.

        Iterating over a :class:`Consumer` yields messages until it is
        closed.
    """

    def __init__(self, owner, maxsize=None):

        if maxsize is None:
            maxsize = config.consumer_maxsize

        self.owner = owner
        self.messages = queue.Queue(maxsize)
        self.closed = False

        self._callback = self._put
        owner.add_consumer(self._callback)


    def __enter__(self):
        return self


    def __exit__(self, *exc_info):
        self.close()


    def __iter__(self):

        while True:
            try:
                message = self.messages.get(timeout=config.idle_timeout)
            except queue.Empty:
                if self.closed == True:
                    return
                continue

            yield message


    def get(self, timeout=None):
        """ Return the next :class:`InboundMessage`. Raises
            :class:`queue.Empty` if none arrives within *timeout* seconds.
        """

        return self.messages.get(timeout=timeout)


    def close(self):

        if self.closed == True:
            return

        self.closed = True
        self.owner.remove_consumer(self._callback)


    def _put(self, payload, handle):

        message = InboundMessage(payload, handle)

        while self.closed == False:
            try:
                self.messages.put(message, timeout=config.idle_timeout)
            except queue.Full:
                continue
            else:
                return


# end of class Consumer


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
