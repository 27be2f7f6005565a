"""A chat client: standard input to the relay, the relay to standard output."""

import logging
import typing

import trio

from chatrelay.config import ClientConfig
from chatrelay.pump import REMOTE, pump
from chatrelay.transport import connect, peer_address

logger = logging.getLogger(__name__)


async def run_client(
    config: ClientConfig,
    stdin: trio.abc.ReceiveStream,
    stdout: trio.abc.SendStream,
    log: typing.Optional[logging.Logger] = None,
) -> str:
    """Connects to a relay and chats until either side hangs up.

    Arguments:
        config {ClientConfig} -- Where to connect and how much to read at once.
        stdin {trio.abc.ReceiveStream} -- What the user types.
        stdout {trio.abc.SendStream} -- Where the chat is shown.

    Keyword Arguments:
        log {logging.Logger} -- Where notices go. (default: this module's)

    Raises:
        RelaySetupError: Could not connect.
        PumpError: The connection or the terminal failed.

    Returns:
        str -- 'local' if the user ended the chat, 'remote' if the relay did.
    """

    log = log or logger

    stream = await connect(config.host, config.port)
    log.info("connected to server: %s ...", peer_address(stream))

    try:
        ended = await pump(stdin, stdout, stream, config.buffer_size)

    finally:
        await stream.aclose()

    if ended == REMOTE:
        log.info("server closed the connection")

    log.info("hanging up")
    return ended
