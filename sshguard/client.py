# Copyright 2023- by Open Kilt LLC. All rights reserved.
# This file is part of the SSHGuard Software (SSHGuard)
# Licensed under the Redis Source Available License 2.0 (RSALv2)

import argparse
import logging
import sys
from sshguard.comms.mq_client import MQClient
from sshguard.comms.dtos import SessionListRequestDto, SessionListResponseDto, EventWatchRequestDto
from sshguard.cli.formatter import print_sessions, print_event_structured

logger = logging.getLogger('sshguard_client')


def run_main():

    parser = argparse.ArgumentParser(description="SSHGuard Command Line Interface")

    subparsers = parser.add_subparsers(title='Commands', dest='command', help='Available Operations')
    subparsers.required = True

    parser.add_argument(
        '--debug',
        action='store_true',
        help='Print debug info'
    )
    parser.add_argument(
        '--json',
        action='store_true',
        help='Print output to JSON'
    )

    # create the parser for the "sessions" command
    subparsers.add_parser('sessions', help='List the SSH sessions currently tracked')

    # create the parser for the "watch" command
    parser_watch = subparsers.add_parser('watch', help='Watch live SSH session and traffic events')
    parser_watch.add_argument('--event-types', '-e', nargs='+', default=None,
                              help='Only show these event types (e.g., login logout)')

    args = parser.parse_args()

    # create logger
    ch = logging.StreamHandler(stream=sys.stdout)
    if args.debug:
        logger.setLevel(logging.DEBUG)
        ch.setLevel(logging.DEBUG)
        formatter = logging.Formatter('%(asctime)s - %(filename)s:%(lineno)d - %(levelname)s - %(message)s')
    else:
        logger.setLevel(logging.INFO)
        ch.setLevel(logging.INFO)
        formatter = logging.Formatter('%(message)s')

    ch.setFormatter(formatter)

    # add ch to logger
    logger.addHandler(ch)

    client = MQClient()
    if not client.initialized:
        sys.exit(1)

    if args.command == 'sessions':
        correlation_id = client.make_request(SessionListRequestDto())

        response = client.listen_for_response(correlation_id)
        if response is None:
            logger.error("Unable to communicate with sshguardd")
            sys.exit(1)

        list_data = response.dto_payload  # type: SessionListResponseDto
        print_sessions(list_data, output_json=args.json)

    elif args.command == 'watch':

        if args.event_types:
            request_dto = EventWatchRequestDto(event_types=args.event_types)
        else:
            request_dto = EventWatchRequestDto()
        request_correlation_id = client.make_request(request_dto)

        try:

            while True:
                # Continually make the watch request to keep it refreshed.
                # Once timed out, it will stop sending responses
                client.make_request(request_dto, correlation_id=request_correlation_id)

                response_data = client.listen_for_response(request_correlation_id, timeout_sec=0.25)
                if response_data is not None:
                    print_event_structured(response_data.dto_payload.event, args.json)

        except KeyboardInterrupt:
            pass

    client.disconnect()


if __name__ == "__main__":

    run_main()
