import threading
import time
from unittest import mock

import boto3
import pytest
from botocore.exceptions import ClientError

import anyqueue
from anyqueue.providers import sqs


QUEUE_URL = 'https://sqs.us-west-2.amazonaws.com/123456789012/todos'


def client_error(operation, code='AWS.SimpleQueueService.NonExistentQueue'):
    return ClientError({'Error': {'Code': code, 'Message': 'failed'}}, operation)


class Backend:
    """ Stand-in for the boto3 SQS client. Resolving the queue URL blocks
        until *go* is set, so that tests can attach listeners first.
    """

    def __init__(self):
        self.go = threading.Event()
        self.client = mock.MagicMock()
        self.resolve_error = None
        self.received = list()
        self.replies = list()
        self.polling = threading.Event()

        self.client.get_queue_url.side_effect = self.get_queue_url
        self.client.create_queue.return_value = {'QueueUrl': QUEUE_URL + '-created'}
        self.client.receive_message.side_effect = self.receive_message

    def get_queue_url(self, QueueName):
        self.go.wait(2)
        if self.resolve_error is not None:
            raise self.resolve_error
        return {'QueueUrl': QUEUE_URL}

    def receive_message(self, **params):
        self.received.append(params)
        self.polling.set()
        if self.replies:
            reply = self.replies.pop(0)
            if isinstance(reply, Exception):
                raise reply
            return reply
        time.sleep(0.001)
        return {}


# end of class Backend



@pytest.fixture
def backend(monkeypatch):

    backend = Backend()
    monkeypatch.setattr(boto3, 'client', lambda service: backend.client)
    monkeypatch.setattr(boto3, 'setup_default_session', mock.MagicMock())

    queues = list()

    def factory(**options):
        options.setdefault('queue_name', 'todos')
        queue = anyqueue.connect(provider='sqs', **options)
        queues.append(queue)
        return queue

    backend.queue = factory

    yield backend

    backend.go.set()
    for queue in queues:
        queue.remove_all_listeners()
        queue.close()


def test_resolves_existing_queue(backend):

    queue = backend.queue()
    backend.go.set()

    assert queue.wait_ready(2)
    assert queue.provider.queue_url == QUEUE_URL
    backend.client.get_queue_url.assert_called_once_with(QueueName='todos')
    assert backend.client.create_queue.called == False


def test_creates_missing_queue(backend):

    backend.resolve_error = client_error('GetQueueUrl')
    queue = backend.queue(attributes={'VisibilityTimeout': '60'})
    backend.go.set()

    assert queue.wait_ready(2)
    assert queue.provider.queue_url == QUEUE_URL + '-created'
    backend.client.create_queue.assert_called_once_with(
        QueueName='todos', Attributes={'VisibilityTimeout': '60'})


def test_create_without_attributes(backend):

    backend.resolve_error = client_error('GetQueueUrl')
    queue = backend.queue()
    backend.go.set()

    assert queue.wait_ready(2)
    backend.client.create_queue.assert_called_once_with(QueueName='todos')


def test_resolve_and_create_fail(backend, wait_for):

    backend.resolve_error = client_error('GetQueueUrl')
    create_error = client_error('CreateQueue', code='AccessDenied')
    backend.client.create_queue.side_effect = create_error

    queue = backend.queue()
    errors = list()
    queue.on('error', errors.append)
    backend.go.set()

    assert wait_for(lambda: len(errors) == 2)
    assert errors == [backend.resolve_error, create_error]
    assert queue.wait_ready(0.01) == False


def test_publish_before_ready(backend, wait_for):

    queue = backend.queue()
    queue.publish('first')
    queue.publish({'second': 2}, {'DelaySeconds': 5, 'QueueUrl': 'elsewhere', 'MessageBody': 'x'})

    time.sleep(0.01)
    assert backend.client.send_message.called == False

    backend.go.set()
    assert wait_for(lambda: backend.client.send_message.call_count == 2)

    first, second = backend.client.send_message.call_args_list
    assert first == mock.call(QueueUrl=QUEUE_URL, MessageBody='first')

    # Provider-specific parameters cannot replace the queue URL or body.

    assert second == mock.call(QueueUrl=QUEUE_URL, MessageBody='{"second":2}', DelaySeconds=5)


def test_publish_bytes(backend, wait_for):

    queue = backend.queue()
    backend.go.set()
    queue.publish(b'hello')

    assert wait_for(lambda: backend.client.send_message.called)
    backend.client.send_message.assert_called_once_with(QueueUrl=QUEUE_URL, MessageBody='aGVsbG8=')


def test_publish_error(backend, wait_for):

    failure = client_error('SendMessage', code='InvalidParameterValue')
    backend.client.send_message.side_effect = failure

    queue = backend.queue()
    errors = list()
    queue.on('error', errors.append)
    backend.go.set()
    queue.publish('rejected')

    assert wait_for(lambda: errors)
    assert errors == [failure]


def test_ack(backend, wait_for):

    queue = backend.queue()
    backend.go.set()
    assert queue.wait_ready(2)

    queue.ack('receipt-1')

    assert wait_for(lambda: backend.client.delete_message.called)
    backend.client.delete_message.assert_called_once_with(QueueUrl=QUEUE_URL, ReceiptHandle='receipt-1')


def test_ack_with_delete_after_receive(backend):

    queue = backend.queue(delete_after_receive=True)
    backend.go.set()
    assert queue.wait_ready(2)

    queue.ack('receipt-1')
    time.sleep(0.01)

    assert backend.client.delete_message.called == False


def test_poll_dispatch(backend, wait_for):

    backend.replies.append({'Messages': [
        {'Body': '{"todo": "write tests"}', 'ReceiptHandle': 'r1'},
        {'Body': 'aGVsbG8=', 'ReceiptHandle': 'r2'},
    ]})

    queue = backend.queue(delete_after_receive=True)
    received = list()
    queue.on('message', lambda payload, handle: received.append((payload, handle)))
    backend.go.set()

    assert wait_for(lambda: len(received) == 2)
    assert received == [({'todo': 'write tests'}, 'r1'), (b'hello', 'r2')]

    assert wait_for(lambda: backend.client.delete_message.call_count == 2)
    assert backend.client.delete_message.call_args_list == [
        mock.call(QueueUrl=QUEUE_URL, ReceiptHandle='r1'),
        mock.call(QueueUrl=QUEUE_URL, ReceiptHandle='r2'),
    ]


def test_no_delete_after_unsubscribe(backend, wait_for):

    backend.replies.append({'Messages': [{'Body': '"only"', 'ReceiptHandle': 'r1'}]})

    queue = backend.queue(delete_after_receive=True)
    received = list()

    # The one-shot listener is removed before it runs, so the provider is
    # already unsubscribed by the time the message has been dispatched.

    queue.once('message', lambda payload, handle: received.append(payload))
    backend.go.set()

    assert wait_for(lambda: received)
    assert wait_for(lambda: queue.provider.poller.running == False)
    assert received == ['only']
    assert backend.client.delete_message.called == False


def test_detached_before_next_tick(backend, hold, drain):

    backend.replies.append({'Messages': [{'Body': '"unclaimed"', 'ReceiptHandle': 'r1'}]})

    queue = backend.queue(delete_after_receive=True)
    backend.go.set()
    assert queue.wait_ready(2)

    callback = lambda payload, handle: None
    release = hold(queue)
    queue.on('message', callback)
    queue.off('message', callback)
    release.set()

    assert drain(queue)
    time.sleep(0.05)

    assert backend.received == []
    assert backend.client.delete_message.called == False
    assert queue.provider.poller.running == False


def test_detached_before_ready(backend, wait_for, drain):

    backend.replies.append({'Messages': [{'Body': '"unclaimed"', 'ReceiptHandle': 'r1'}]})

    queue = backend.queue(delete_after_receive=True)
    callback = lambda payload, handle: None

    # The subscription is held by the provider until the queue URL is known;
    # unsubscribing in the meantime means polling never starts.

    queue.on('message', callback)
    assert wait_for(lambda: queue.provider.gate.pending() == 1)
    queue.off('message', callback)

    backend.go.set()
    assert queue.wait_ready(2)
    assert drain(queue)
    time.sleep(0.05)

    assert backend.received == []
    assert backend.client.delete_message.called == False
    assert queue.provider.poller.running == False


def test_receive_parameters(backend):

    queue = backend.queue()
    provider = queue.provider
    provider.queue_url = QUEUE_URL

    assert provider.receive_parameters() == {'QueueUrl': QUEUE_URL, 'MaxNumberOfMessages': 1}

    queue = backend.queue(max_receive_count=10, visibility_timeout=30, wait_time_seconds=0)
    provider = queue.provider
    provider.queue_url = QUEUE_URL

    assert provider.receive_parameters() == {
        'QueueUrl': QUEUE_URL,
        'MaxNumberOfMessages': 10,
        'VisibilityTimeout': 30,
        'WaitTimeSeconds': 0,
    }


def test_receive_error_continues(backend, wait_for):

    failure = client_error('ReceiveMessage', code='ServiceUnavailable')
    backend.replies.append(failure)
    backend.replies.append({'Messages': [{'Body': '"after"', 'ReceiptHandle': 'r1'}]})

    queue = backend.queue()
    errors = list()
    received = list()
    queue.on('error', errors.append)
    queue.on('message', lambda payload, handle: received.append(payload))
    backend.go.set()

    assert wait_for(lambda: received)
    assert errors == [failure]
    assert received == ['after']


def test_polling_stops(backend, wait_for):

    queue = backend.queue(delay_between_polls=0.01)
    callback = lambda payload, handle: None
    queue.on('message', callback)
    backend.go.set()

    # Let the loop run for 25 ms from its first receive call: calls start at
    # roughly 0, 11 and 22 ms, each taking 1 ms plus the 10 ms delay.

    assert backend.polling.wait(2)
    time.sleep(0.025)
    queue.off('message', callback)

    assert wait_for(lambda: queue.provider.poller.running == False)

    # Nothing further is requested once unsubscribed.

    count = len(backend.received)
    assert 2 <= count <= 3

    time.sleep(0.05)
    assert len(backend.received) == count


def test_resubscribe(backend, wait_for):

    queue = backend.queue(delay_between_polls=0.01)
    callback = lambda payload, handle: None

    queue.on('message', callback)
    backend.go.set()
    assert wait_for(lambda: backend.received)

    queue.off('message', callback)
    assert wait_for(lambda: queue.provider.poller.running == False)
    count = len(backend.received)

    queue.on('message', callback)
    assert wait_for(lambda: len(backend.received) > count)


def test_close(backend):

    queue = backend.queue()
    backend.go.set()
    assert queue.wait_ready(2)

    queue.close()
    assert backend.client.method_calls == [mock.call.get_queue_url(QueueName='todos')]


def test_configure(tmp_path):

    with mock.patch.object(boto3, 'setup_default_session') as setup:
        sqs.configure(None)
        assert setup.called == False

        sqs.configure({'region_name': 'us-west-2'})
        setup.assert_called_once_with(region_name='us-west-2')

    path = tmp_path / 'aws.json'
    path.write_text('{"region_name": "eu-west-1", "aws_access_key_id": "key"}')

    with mock.patch.object(boto3, 'setup_default_session') as setup:
        sqs.configure(str(path))
        setup.assert_called_once_with(region_name='eu-west-1', aws_access_key_id='key')


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
