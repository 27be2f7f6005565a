"""Two-way copying between a local pair of streams and a remote stream."""

import logging
import typing

import trio

from chatrelay.errors import PumpError

logger = logging.getLogger(__name__)

LOCAL = "local"
REMOTE = "remote"


async def pump(
    local_in: trio.abc.ReceiveStream,
    local_out: trio.abc.SendStream,
    remote: trio.abc.Stream,
    buffer_size: int,
) -> str:
    """Copies local_in to remote and remote to local_out, until either
    side reaches end-of-stream.

        >>> import trio.testing
        >>> async def demo():
        ...     local_in = trio.testing.MemoryReceiveStream()
        ...     local_out = trio.testing.MemorySendStream()
        ...     remote, peer = trio.testing.memory_stream_pair()
        ...     await peer.send_all(b'from afar')
        ...     await peer.aclose()
        ...     print(await pump(local_in, local_out, remote, 64))
        ...     print(bytes(local_out.get_data_nowait()))
        ...
        >>> trio.run(demo)
        remote
        b'from afar'

    Arguments:
        local_in {trio.abc.ReceiveStream} -- Where outgoing data comes from.
        local_out {trio.abc.SendStream} -- Where incoming data goes.
        remote {trio.abc.Stream} -- The other side of the conversation.
        buffer_size {int} -- The largest chunk copied in one go.

    Raises:
        PumpError: Either side failed with something other than end-of-stream.

    Returns:
        str -- Which side ended first: 'local' or 'remote'.
    """

    ended = []  # type: typing.List[str]
    failures = []  # type: typing.List[BaseException]

    async with trio.open_nursery() as nursery:

        async def _copy(source, sink, side):
            try:
                while True:
                    data = await source.receive_some(buffer_size)

                    if not data:
                        break

                    await sink.send_all(data)

            except (trio.BrokenResourceError, trio.ClosedResourceError, OSError) as err:
                failures.append(err)

            else:
                ended.append(side)

            nursery.cancel_scope.cancel()

        nursery.start_soon(_copy, local_in, remote, LOCAL)
        nursery.start_soon(_copy, remote, local_out, REMOTE)

    if failures:
        err = failures[0]
        raise PumpError("{}: {}".format(type(err).__name__, str(err))) from err

    logger.debug("pump finished, %s side reached end-of-stream", ended[0])
    return ended[0]
