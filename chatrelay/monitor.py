"""
The operator channel.

The operator (a human at the relay's terminal) talks to the relay over an
in-process duplex channel made of two bounded trio memory channels. The relay
sees its end as just another stream; the monitor task sees the other end.
"""

import logging
import typing

import trio

from chatrelay.pump import pump

logger = logging.getLogger(__name__)


class OperatorEndpoint(trio.abc.Stream):
    """One end of an operator channel.

    Chunks are queued whole; receive_some hands them back in pieces of at
    most max_bytes, keeping the remainder for the next call.

        >>> async def demo():
        ...     relay_end, monitor_end = open_operator_channel()
        ...     await monitor_end.send_all(b'hello world')
        ...     print(await relay_end.receive_some(5))
        ...     print(await relay_end.receive_some(100))
        ...     await monitor_end.aclose()
        ...     print(await relay_end.receive_some(100))
        ...
        >>> trio.run(demo)
        b'hello'
        b' world'
        b''
    """

    def __init__(
        self,
        send_channel: trio.MemorySendChannel,
        receive_channel: trio.MemoryReceiveChannel,
        name: str,
    ):
        self._send_channel = send_channel
        self._receive_channel = receive_channel
        self._pending = b""
        self.name = name

    def __repr__(self):
        return "OperatorEndpoint({})".format(repr(self.name))

    async def send_all(self, data: typing.Union[bytes, bytearray, memoryview]):
        """Queues a whole chunk for the other end.

        Raises:
            trio.BrokenResourceError: The other end has been closed.
            trio.ClosedResourceError: This end has been closed.
        """

        data = bytes(data)

        if not data:
            await trio.lowlevel.checkpoint()
            return

        await self._send_channel.send(data)

    async def wait_send_all_might_not_block(self):
        await trio.lowlevel.checkpoint()

    async def receive_some(self, max_bytes: typing.Optional[int] = None) -> bytes:
        """Receives at most max_bytes, or b'' once the other end has closed."""

        if max_bytes is not None and max_bytes < 1:
            raise ValueError("max_bytes must be >= 1")

        if not self._pending:
            try:
                self._pending = await self._receive_channel.receive()

            except trio.EndOfChannel:
                return b""

        else:
            await trio.lowlevel.checkpoint()

        if max_bytes is None:
            chunk, self._pending = self._pending, b""

        else:
            chunk, self._pending = self._pending[:max_bytes], self._pending[max_bytes:]

        return chunk

    async def aclose(self):
        await self._send_channel.aclose()
        await self._receive_channel.aclose()


def open_operator_channel(
    max_buffer: int = 16,
) -> typing.Tuple[OperatorEndpoint, OperatorEndpoint]:
    """Creates a bounded duplex operator channel.

    Arguments:
        max_buffer {int} -- How many chunks each direction may hold before
                            send_all blocks. (default: 16)

    Returns:
        (OperatorEndpoint, OperatorEndpoint) -- The relay's end, then the
                                                monitor's end.
    """

    to_relay_send, to_relay_receive = trio.open_memory_channel(max_buffer)
    to_monitor_send, to_monitor_receive = trio.open_memory_channel(max_buffer)

    relay_end = OperatorEndpoint(to_monitor_send, to_relay_receive, "relay")
    monitor_end = OperatorEndpoint(to_relay_send, to_monitor_receive, "monitor")

    return relay_end, monitor_end


async def run_monitor(
    endpoint: OperatorEndpoint,
    stdin: trio.abc.ReceiveStream,
    stdout: trio.abc.SendStream,
    buffer_size: int,
):
    """The operator's front end: a local chat window.

    Copies the operator's input to the relay and everything the relay
    mirrors back to the operator's output, until either side ends. The
    endpoint is always closed on the way out, which tells the relay the
    operator is gone.

    Arguments:
        endpoint {OperatorEndpoint} -- The monitor's end of the operator channel.
        stdin {trio.abc.ReceiveStream} -- The operator's input.
        stdout {trio.abc.SendStream} -- The operator's output.
        buffer_size {int} -- The largest chunk copied in one go.
    """

    try:
        ended = await pump(stdin, stdout, endpoint, buffer_size)
        logger.debug("monitor stopped: %s side ended", ended)

    finally:
        await endpoint.aclose()
