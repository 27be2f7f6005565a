"""
Command line entry points: chatrelay-server and chatrelay-client.
"""

import argparse
import logging
import sys
import typing

import trio

from chatrelay.client import run_client
from chatrelay.config import (
    DEFAULT_BUFFER_SIZE,
    DEFAULT_HOST,
    DEFAULT_MAX_CLIENTS,
    DEFAULT_PORT,
    ClientConfig,
    RelayConfig,
)
from chatrelay.errors import RelayError
from chatrelay.relay import Relay
from chatrelay.transport import open_stdio

logger = logging.getLogger("chatrelay")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def build_server_parser() -> argparse.ArgumentParser:
    """The relay's argument parser.

        >>> args = build_server_parser().parse_args(['-p', '9000', '-m', '2'])
        >>> args.port, args.max_clients, args.host
        (9000, 2, None)
    """

    parser = argparse.ArgumentParser(
        prog="chatrelay-server",
        description="Relay chat between every connected client and this terminal.",
    )

    parser.add_argument("-p", "--port", type=int, default=DEFAULT_PORT, help="TCP port to listen on")
    parser.add_argument("-H", "--host", default=None, help="address to bind (default: every interface)")
    parser.add_argument(
        "-m", "--max-clients", type=int, default=DEFAULT_MAX_CLIENTS, help="most clients served at once"
    )
    parser.add_argument(
        "-b", "--buffer-size", type=int, default=DEFAULT_BUFFER_SIZE, help="largest message, in bytes"
    )
    parser.add_argument(
        "-t", "--timeout", type=float, default=0.1, help="polling interval in seconds; 0 blocks"
    )
    parser.add_argument(
        "-w", "--write-timeout", type=float, default=5.0, help="seconds before a stalled client is dropped"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="log debugging output")

    return parser


def build_client_parser() -> argparse.ArgumentParser:
    """The client's argument parser. -h selects the host; use --help for usage.

        >>> args = build_client_parser().parse_args(['-h', 'relay.example', '-p', '9000'])
        >>> args.host, args.port
        ('relay.example', 9000)
    """

    parser = argparse.ArgumentParser(
        prog="chatrelay-client",
        description="Chat through a chatrelay server.",
        add_help=False,
    )

    parser.add_argument("--help", action="help", help="show this help message and exit")
    parser.add_argument("-h", "--host", default=DEFAULT_HOST, help="the relay's host")
    parser.add_argument("-p", "--port", type=int, default=DEFAULT_PORT, help="the relay's TCP port")
    parser.add_argument(
        "-b", "--buffer-size", type=int, default=DEFAULT_BUFFER_SIZE, help="largest chunk read at once"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="log debugging output")

    return parser


def setup_logging(verbose: bool = False):
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(name)s %(levelname)s: %(message)s",
            stream=sys.stderr,
        )

    else:
        logging.basicConfig(level=logging.INFO, format="%(message)s", stream=sys.stderr)


async def _serve_stdio(config: RelayConfig):
    stdin, stdout = open_stdio()

    try:
        await Relay(config, logger=logger).run_with_monitor(stdin, stdout)

    finally:
        with trio.CancelScope(shield=True):
            await stdin.aclose()
            await stdout.aclose()


async def _chat_stdio(config: ClientConfig):
    stdin, stdout = open_stdio()

    try:
        await run_client(config, stdin, stdout, log=logger)

    finally:
        with trio.CancelScope(shield=True):
            await stdin.aclose()
            await stdout.aclose()


def _run(parser: argparse.ArgumentParser, make_config, runner, argv) -> int:
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    try:
        config = make_config(args)

    except ValueError as err:
        parser.error(str(err))

    try:
        trio.run(runner, config)

    except RelayError as err:
        logger.error("%s: %s", parser.prog, err)
        return EXIT_FAILURE

    except KeyboardInterrupt:
        return EXIT_INTERRUPTED

    return EXIT_OK


def server_main(argv: typing.Optional[typing.Sequence[str]] = None) -> int:
    """Runs the relay. Returns the process exit code."""

    def _config(args):
        return RelayConfig(
            port=args.port,
            host=args.host,
            max_clients=args.max_clients,
            buffer_size=args.buffer_size,
            poll_timeout=args.timeout,
            write_timeout=args.write_timeout,
        )

    return _run(build_server_parser(), _config, _serve_stdio, argv)


def client_main(argv: typing.Optional[typing.Sequence[str]] = None) -> int:
    """Runs the client. Returns the process exit code."""

    def _config(args):
        return ClientConfig(host=args.host, port=args.port, buffer_size=args.buffer_size)

    return _run(build_client_parser(), _config, _chat_stdio, argv)
