#!/usr/bin/env python3
""" Publish a few messages to an Amazon SQS queue, creating the queue if
    necessary, and print them as they are received. Received messages are
    deleted from the queue once they have been dispatched.

    Credentials are found the usual boto3 way: environment variables, the
    shared credentials file, or an instance profile.
"""

import argparse
import datetime
import time

import anyqueue


def main():

    parser = argparse.ArgumentParser(description=__doc__,
                formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument('url', nargs='?', default='sqs://hello',
                        help='Queue URL (default: %(default)s)')
    parser.add_argument('-r', '--region', default='us-east-1',
                        help='AWS region (default: %(default)s)')
    args = parser.parse_args()

    queue = anyqueue.connect(args.url,
                             delete_after_receive=True,
                             attributes={'VisibilityTimeout': '20',
                                         'ReceiveMessageWaitTimeSeconds': '2'},
                             wait_time_seconds=2,
                             backend_config={'region_name': args.region})

    queue.on('message', lambda payload, handle: print(payload))
    queue.on('error', lambda error: print('error:', error))

    if queue.wait_ready(30) == False:
        print('queue not ready; are your AWS credentials set up?')
        queue.close()
        return

    print('queue ready')

    for count in range(3):
        time.sleep(1)
        queue.publish('hello world: ' + str(datetime.datetime.now()))

    time.sleep(5)
    queue.remove_all_listeners('message')
    print('unsubscribed')

    # This one stays in the queue, and will be received the next time this
    # example runs.

    queue.publish('hello world: ' + str(datetime.datetime.now()))
    time.sleep(1)

    queue.close()


if __name__ == '__main__':
    main()

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
