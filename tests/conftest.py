import pytest
import threading
import time

import anyqueue
from anyqueue.providers.base import Provider


class StubProvider(Provider):
    """ A provider with no backend at all, acting as a foil for facade tests.
        Readiness only fires when a test calls ready() explicitly.
    """

    name = 'stub'

    def __init__(self, queue, options):
        Provider.__init__(self, queue, options)
        self.calls = list()

    def initialize(self):
        self.calls.append('initialize')

    def publish(self, payload, extra=None):
        self.gate.when_ready(lambda: self.calls.append(('publish', payload, extra)))

    def subscribe(self):
        self.calls.append('subscribe')

    def unsubscribe(self):
        self.calls.append('unsubscribe')

    def ack(self, handle):
        self.calls.append(('ack', handle))

    def close(self):
        self.calls.append('close')


# end of class StubProvider



def _wait_for(predicate, timeout=2.0, interval=0.002):
    """ Poll *predicate* until it returns something true, or until *timeout*
        seconds have elapsed. Returns the last value of *predicate*.
    """

    deadline = time.time() + timeout

    while time.time() < deadline:
        result = predicate()
        if result:
            return result
        time.sleep(interval)

    return predicate()


@pytest.fixture
def wait_for():
    return _wait_for


def _hold(queue):
    """ Occupy the scheduler thread of *queue* until the returned event is
        set, so that tests can act before the next tick.
    """

    started = threading.Event()
    release = threading.Event()
    queue.scheduler.schedule(lambda: (started.set(), release.wait(2)))
    started.wait(2)
    return release


def _drain(queue):
    """ Wait until everything scheduled so far for *queue* has run.
    """

    done = threading.Event()
    queue.scheduler.schedule(done.set)
    return done.wait(2)


@pytest.fixture
def hold():
    return _hold


@pytest.fixture
def drain():
    return _drain


@pytest.fixture
def stub(monkeypatch):
    """ Register StubProvider under the 'stub' selection key, and return a
        factory for queues that use it.
    """

    lookup = anyqueue.providers.lookup

    def patched(name):
        if name == 'stub':
            return StubProvider
        return lookup(name)

    monkeypatch.setattr(anyqueue.providers, 'lookup', patched)

    created = list()

    def factory(queue_name='stub-queue', **options):
        queue = anyqueue.connect(provider='stub', queue_name=queue_name, **options)
        created.append(queue)
        return queue

    yield factory

    for queue in created:
        queue.close()


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
