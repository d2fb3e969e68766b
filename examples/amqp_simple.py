#!/usr/bin/env python3
""" Publish a few messages through a RabbitMQ topic exchange and print them
    as they come back. The last message is published after the listener has
    been removed, and is not printed.
"""

import argparse
import datetime
import time

import anyqueue


def main():

    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument('url', nargs='?', default='amqp://127.0.0.1:5672/hello',
                        help='Queue URL (default: %(default)s)')
    parser.add_argument('-x', '--exchange', default='helloExchange',
                        help='Exchange name (default: %(default)s)')
    args = parser.parse_args()

    queue = anyqueue.connect(args.url, exchange_name=args.exchange)
    queue.on('message', lambda payload, handle: print(payload))
    queue.on('error', lambda error: print('error:', error))

    if queue.wait_ready(10) == False:
        print('queue not ready after 10 seconds')
        queue.close()
        return

    print('queue ready')

    for count in range(3):
        time.sleep(1)
        queue.publish('hello world: ' + str(datetime.datetime.now()))

    time.sleep(2)
    queue.remove_all_listeners('message')
    print('unsubscribed')

    queue.publish('hello world: ' + str(datetime.datetime.now()))
    time.sleep(1)

    queue.close()
    print('queue closed')


if __name__ == '__main__':
    main()

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
