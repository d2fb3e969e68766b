#!/usr/bin/env python3
""" Publish a few messages over a ZeroMQ PUB socket and print them as the
    matching SUB socket receives them.
"""

import argparse
import datetime
import time

from queue import Empty

import anyqueue


def main():

    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument('url', nargs='?', default='zmq://127.0.0.1:5555/todos',
                        help='Queue URL (default: %(default)s)')
    args = parser.parse_args()

    queue = anyqueue.connect(args.url)
    queue.on('error', lambda error: print('error:', error))

    with queue.consumer() as consumer:

        if queue.wait_ready(10) == False:
            print('queue not ready after 10 seconds')
            queue.close()
            return

        print('queue ready')

        for count in range(3):
            time.sleep(1)
            queue.publish({'count': count, 'sent': str(datetime.datetime.now())})

        deadline = time.time() + 2

        while time.time() < deadline:
            try:
                message = consumer.get(timeout=0.5)
            except Empty:
                continue

            print(message.payload)

    queue.close()
    print('queue closed')


if __name__ == '__main__':
    main()

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
