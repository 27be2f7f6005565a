"""
Transport bring-up.

Everything here hands out trio streams and listeners, which are
non-blocking from the moment they exist.
"""

import logging
import os
import typing

import trio

from chatrelay.errors import RelaySetupError

logger = logging.getLogger(__name__)


def format_address(sockaddr: typing.Any) -> str:
    """Formats a socket address for logs.

        >>> format_address(('127.0.0.1', 5055))
        '127.0.0.1:5055'
        >>> format_address(('::1', 5055, 0, 0))
        '[::1]:5055'
        >>> format_address('/tmp/relay.sock')
        '/tmp/relay.sock'

    Arguments:
        sockaddr {Any} -- An address as returned by getpeername or getsockname.

    Returns:
        str -- A printable form of it.
    """

    if isinstance(sockaddr, tuple) and len(sockaddr) >= 2:
        host, port = sockaddr[0], sockaddr[1]

        if ":" in host:
            return "[{}]:{}".format(host, port)

        return "{}:{}".format(host, port)

    return str(sockaddr)


def peer_address(stream: trio.SocketStream) -> str:
    """The printable address of the peer of a socket stream."""

    try:
        return format_address(stream.socket.getpeername())

    except OSError:
        # The peer can vanish between accept and this call.
        return "<unknown peer>"


def local_address(listener: trio.SocketListener) -> str:
    """The printable address a listener is bound to."""
    return format_address(listener.socket.getsockname())


async def open_listeners(
    port: int, host: typing.Optional[str] = None, backlog: typing.Optional[int] = None
) -> typing.List[trio.SocketListener]:
    """Binds and starts listening on a TCP port.

    Arguments:
        port {int} -- The port to listen on; 0 picks a free one.

    Keyword Arguments:
        host {Optional[str]} -- The address to bind; None binds every interface.
                                (default: None)
        backlog {Optional[int]} -- The listen backlog. (default: trio's)

    Raises:
        RelaySetupError: Resolving or binding the address failed.

    Returns:
        List[trio.SocketListener] -- One listener per resolved address.
    """

    try:
        listeners = await trio.open_tcp_listeners(port, host=host, backlog=backlog)

    except OSError as err:
        raise RelaySetupError(
            "cannot listen on {}:{}: {}".format(host or "*", port, err)
        ) from err

    for listener in listeners:
        logger.info("listening on %s", local_address(listener))

    return listeners


async def connect(host: str, port: int) -> trio.SocketStream:
    """Connects to a relay.

    Arguments:
        host {str} -- The relay's host name or address.
        port {int} -- The relay's TCP port.

    Raises:
        RelaySetupError: Resolving or connecting failed.

    Returns:
        trio.SocketStream -- The connected stream.
    """

    try:
        return await trio.open_tcp_stream(host, port)

    except OSError as err:
        raise RelaySetupError("cannot connect to {}:{}: {}".format(host, port, err)) from err


def open_stdio() -> typing.Tuple[trio.lowlevel.FdStream, trio.lowlevel.FdStream]:
    """Opens the process' standard input and output as trio streams.

    The descriptors are duplicated, so closing the streams leaves the
    interpreter's own sys.stdin and sys.stdout usable.

    Returns:
        (FdStream, FdStream) -- Standard input, then standard output.
    """

    stdin = trio.lowlevel.FdStream(os.dup(0))
    stdout = trio.lowlevel.FdStream(os.dup(1))

    return stdin, stdout
