"""
Participants: everything the relay polls.

There are three kinds: the listener (a source of new participants), the
operator channel, and remote clients. Each has a single reader coroutine,
``watch``, which performs bounded reads and posts one Readiness at a time
into the event loop's inbox. Only the event loop writes to participants or
closes them.
"""

import logging
import typing

import attr
import trio

from chatrelay.errors import is_transient, participant_failure
from chatrelay.transport import local_address

logger = logging.getLogger(__name__)

# Readiness kinds.
ACCEPTED = "accepted"
RECEIVED = "received"
ENDED = "ended"
FAILED = "failed"


@attr.s(auto_attribs=True, frozen=True)
class Readiness:
    """Something a participant has for the event loop.

    ``data`` is the accepted stream for ACCEPTED, the chunk read for
    RECEIVED, None for ENDED and a ParticipantError for FAILED.
    """

    source: "Participant"
    kind: str
    data: typing.Any = None


class Participant:
    """
    Base participant. Subclassed by each kind.
    """

    kind = "participant"

    def __init__(self, name: str):
        """
        Arguments:
            name {str} -- How this participant is referred to in logs.
        """

        self.name = name
        self.closed = False

    def __repr__(self):
        return "{}({})".format(type(self).__name__, repr(self.name))

    def fileno(self) -> int:
        """The underlying descriptor, or -1 if there is none (anymore)."""
        return -1

    async def watch(self, inbox: trio.MemorySendChannel, buffer_size: int):
        """Reads from this participant until it ends, posting Readiness
        objects to the inbox."""

        raise NotImplementedError("Please subclass and implement!")

    async def send_all(self, data: bytes):
        """Writes all of data to this participant."""

        raise NotImplementedError("{} cannot receive messages".format(self.kind))

    async def aclose(self):
        """Closes this participant. Idempotent."""

        self.closed = True


class StreamParticipant(Participant):
    """A participant backed by a bidirectional trio stream."""

    def __init__(self, name: str, stream: trio.abc.Stream):
        super().__init__(name)
        self.stream = stream

    async def watch(self, inbox: trio.MemorySendChannel, buffer_size: int):
        while True:
            try:
                data = await self.stream.receive_some(buffer_size)

            except trio.ClosedResourceError:
                # Closed by the event loop; nothing left to report.
                return

            except (trio.BrokenResourceError, OSError) as err:
                if is_transient(err):
                    logger.debug("%s: nothing to read yet", self.name)
                    await trio.lowlevel.checkpoint()
                    continue

                await inbox.send(Readiness(self, FAILED, participant_failure(self, err)))
                return

            if not data:
                await inbox.send(Readiness(self, ENDED))
                return

            await inbox.send(Readiness(self, RECEIVED, data))

    async def send_all(self, data: bytes):
        # send_all keeps writing until every byte is accepted, so short
        # writes never surface here.
        await self.stream.send_all(data)

    async def aclose(self):
        self.closed = True
        await self.stream.aclose()


class OperatorParticipant(StreamParticipant):
    """The relay's end of the operator channel."""

    kind = "operator"

    def __init__(self, stream: trio.abc.Stream, name: str = "operator"):
        super().__init__(name, stream)


class ClientParticipant(StreamParticipant):
    """A remote client connection.

    Arguments:
        stream {trio.SocketStream} -- The accepted connection.
        address {str} -- The peer's address, resolved at accept time.
    """

    kind = "client"

    def __init__(self, stream: trio.SocketStream, address: str):
        super().__init__(address, stream)
        self.address = address

    def fileno(self) -> int:
        return self.stream.socket.fileno()


class ListenerParticipant(Participant):
    """The listening endpoint(s). Never receives messages."""

    kind = "listener"

    def __init__(self, listeners: typing.Sequence[trio.SocketListener]):
        super().__init__(", ".join(local_address(l) for l in listeners))
        self.listeners = list(listeners)

    def fileno(self) -> int:
        if not self.listeners:
            return -1

        return self.listeners[0].socket.fileno()

    async def watch(self, inbox: trio.MemorySendChannel, buffer_size: int):
        async with trio.open_nursery() as nursery:
            for listener in self.listeners:
                nursery.start_soon(self._accept_from, listener, inbox)

    async def _accept_from(
        self, listener: trio.SocketListener, inbox: trio.MemorySendChannel
    ):
        while True:
            try:
                stream = await listener.accept()

            except trio.ClosedResourceError:
                return

            except OSError as err:
                if is_transient(err):
                    await trio.lowlevel.checkpoint()
                    continue

                await inbox.send(Readiness(self, FAILED, participant_failure(self, err)))
                return

            try:
                await inbox.send(Readiness(self, ACCEPTED, stream))

            except BaseException:
                # Never handed over, so nobody else will close it.
                await trio.aclose_forcefully(stream)
                raise

    async def aclose(self):
        self.closed = True

        for listener in self.listeners:
            await listener.aclose()
