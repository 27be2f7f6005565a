"""
The relay's event loop.

Every registered participant has one reader task, which posts whatever it
reads into the loop's inbox and then waits for the loop to pick it up. On
each wake-up the loop drains the inbox, orders what it got by slot
(listener, then operator, then clients in ascending slot order) and
dispatches it. The loop is the only place that mutates the registry, writes
to participants or closes them.

Messages are raw byte chunks: whatever one bounded read returned. Nothing
frames them, so a line typed by a user may arrive split across several
messages, or glued to the next one. This is a known limitation of the wire
format.
"""

import logging
import typing

import trio

from chatrelay.errors import (
    OperatorChannelError,
    RegistryFullError,
    RelayError,
)
from chatrelay.participant import (
    ACCEPTED,
    ENDED,
    FAILED,
    RECEIVED,
    ClientParticipant,
    Participant,
    Readiness,
)
from chatrelay.registry import Registry
from chatrelay.router import BroadcastRouter, Delivery
from chatrelay.transport import peer_address


def poll_scope(timeout: float) -> trio.CancelScope:
    """A cancel scope bounding a single wait.

    A positive timeout gives a periodic wake-up; zero or less blocks until
    something happens.

        >>> poll_scope(0).deadline
        inf
        >>> poll_scope(-100).deadline
        inf
    """

    if timeout > 0:
        return trio.move_on_after(timeout)

    return trio.CancelScope()


class EventLoop:
    """Multiplexes the listener, the operator channel and every remote
    client of a registry, routing messages between them.
    """

    def __init__(
        self,
        registry: Registry,
        router: typing.Optional[BroadcastRouter] = None,
        buffer_size: int = 1024,
        timeout: float = 0.1,
        logger: typing.Optional[logging.Logger] = None,
    ):
        """
        Arguments:
            registry {Registry} -- The participants to serve. The loop takes
                                   ownership of all of them.

        Keyword Arguments:
            router {BroadcastRouter} -- Routes messages. (default: one over registry)
            buffer_size {int} -- The largest chunk read in one go. (default: 1024)
            timeout {float} -- The longest a single wait may last; zero or less
                               waits indefinitely. (default: 0.1)
            logger {logging.Logger} -- Where connects, disconnects and failures
                                       are logged. (default: this module's)
        """

        self.registry = registry
        self.router = router or BroadcastRouter(registry)
        self.buffer_size = buffer_size
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)

        self.iterations = 0

        self._inbox_send, self._inbox_receive = trio.open_memory_channel(0)
        self._nursery = None  # type: typing.Optional[trio.Nursery]
        self._wait_scope = None  # type: typing.Optional[trio.CancelScope]
        self._running = False
        self._stopping = False

    def running(self) -> bool:
        """Whether this loop is still up and running.

            >>> from chatrelay.participant import Participant
            >>> loop = EventLoop(Registry(Participant('l'), Participant('o'), 1))
            >>> loop.running()
            False
        """

        return self._running and not self._stopping

    def stop(self):
        """Asks the loop to stop after the readiness being dispatched."""

        self._stopping = True

        if self._wait_scope is not None:
            self._wait_scope.cancel()

    async def run(self):
        """Serves the registry until the operator channel ends.

        Every participant still registered is closed on the way out.

        Raises:
            OperatorChannelError: The operator channel failed.
            ParticipantError: The listener failed.
        """

        if self._running:
            raise RuntimeError("event loop is already running")

        self._running = True
        self._stopping = False
        fatal = None  # type: typing.Optional[RelayError]

        try:
            async with trio.open_nursery() as nursery:
                self._nursery = nursery

                for participant in self.registry:
                    self._watch(participant)

                try:
                    while self.running():
                        batch = await self.wait()
                        await self.dispatch(batch)

                except RelayError as err:
                    fatal = err

                nursery.cancel_scope.cancel()

        finally:
            self._nursery = None
            self._running = False

            with trio.CancelScope(shield=True):
                await self._close_all()

        if fatal is not None:
            raise fatal

    def _watch(self, participant: Participant):
        assert self._nursery is not None

        self._nursery.start_soon(participant.watch, self._inbox_send, self.buffer_size)

    async def _close_all(self):
        for participant in reversed(list(self.registry)):
            await participant.aclose()

        for client in self.registry.clients():
            self.registry.discard(client)

    async def wait(self) -> typing.List[Readiness]:
        """Waits until at least one participant is ready, or the timeout
        passes.

        Returns:
            List[Readiness] -- Everything pending, possibly nothing. Each
                               reader posts at most one Readiness per wake-up.
        """

        batch = []

        with poll_scope(self.timeout) as scope:
            self._wait_scope = scope
            batch.append(await self._inbox_receive.receive())

        self._wait_scope = None

        while True:
            try:
                batch.append(self._inbox_receive.receive_nowait())

            except trio.WouldBlock:
                break

        self.iterations += 1

        if not batch:
            self.logger.debug("idle wake-up")

        return batch

    def order(self, batch: typing.Iterable[Readiness]) -> typing.List[Readiness]:
        """Sorts a batch into dispatch order, dropping whatever comes from
        participants that are no longer registered."""

        slotted = []

        for readiness in batch:
            slot = self.registry.slot_of(readiness.source)

            if slot is not None:
                slotted.append((slot, readiness))

        slotted.sort(key=lambda pair: pair[0])
        return [readiness for _, readiness in slotted]

    async def dispatch(self, batch: typing.Iterable[Readiness]):
        """Services one batch.

        Readiness objects refer to participants rather than slots, so a
        client leaving halfway through never makes the loop skip, or
        double-service, another one.
        """

        pending = self.order(batch)

        for index, readiness in enumerate(pending):
            if not self.running():
                for skipped in pending[index:]:
                    await self._drop(skipped)

                break

            source = readiness.source

            # It may have departed earlier in this same pass.
            if source.closed or source not in self.registry:
                await self._drop(readiness)
                continue

            if source is self.registry.listener:
                await self._on_listener(readiness)

            elif source is self.registry.operator:
                await self._on_operator(readiness)

            else:
                await self._on_client(readiness)

    async def _drop(self, readiness: Readiness):
        # An accepted stream nobody admits is ours to close.
        if readiness.kind == ACCEPTED:
            self.logger.debug("dropping a connection accepted while stopping")
            await trio.aclose_forcefully(readiness.data)

    async def _on_listener(self, readiness: Readiness):
        if readiness.kind == ACCEPTED:
            await self.admit(readiness.data)

        elif readiness.kind == FAILED:
            self.logger.error("listener failed: %s", readiness.data)
            raise readiness.data

    async def _on_operator(self, readiness: Readiness):
        if readiness.kind == RECEIVED:
            await self._route(readiness.source, readiness.data)

        elif readiness.kind == ENDED:
            self.logger.info("operator channel closed, shutting down")
            self.stop()

        elif readiness.kind == FAILED:
            raise OperatorChannelError(
                "operator channel failed: {}".format(readiness.data)
            ) from readiness.data

    async def _on_client(self, readiness: Readiness):
        source = readiness.source

        if readiness.kind == RECEIVED:
            await self._route(source, readiness.data)

        elif readiness.kind == ENDED:
            await self.depart(source)

        elif readiness.kind == FAILED:
            await self.depart(source, readiness.data)

    async def _route(self, origin: Participant, payload: bytes):
        failures = await self.router.route(origin, payload)
        await self._isolate(failures)

    async def _isolate(self, failures: typing.Iterable[Delivery]):
        for failure in failures:
            if failure.recipient is self.registry.operator:
                cause = failure.error.__cause__

                if isinstance(cause, (trio.BrokenResourceError, trio.ClosedResourceError)):
                    self.logger.info("operator channel closed, shutting down")
                    self.stop()
                    continue

                raise OperatorChannelError(
                    "cannot write to operator channel: {}".format(failure.error)
                ) from failure.error

            await self.depart(failure.recipient, failure.error)

    async def admit(self, stream: trio.SocketStream) -> typing.Optional[int]:
        """Registers a freshly accepted connection.

        A full registry refuses it: the connection is closed and nobody
        else is disturbed.

        Arguments:
            stream {trio.SocketStream} -- The accepted connection.

        Returns:
            Optional[int] -- The slot it now occupies, or None if refused.
        """

        address = peer_address(stream)
        participant = ClientParticipant(stream, address)

        try:
            slot = self.registry.add(participant)

        except RegistryFullError:
            self.logger.warning(
                "refusing connection from %s: already serving %d clients",
                address,
                self.registry.max_clients,
            )
            await participant.aclose()
            return None

        self.logger.info("new connection from %s...", address)
        self._watch(participant)

        return slot

    async def depart(
        self, participant: Participant, error: typing.Optional[BaseException] = None
    ):
        """Closes a client and removes it from the registry.

        Arguments:
            participant {Participant} -- The departing client.

        Keyword Arguments:
            error {Optional[BaseException]} -- Why it was dropped, if it did not
                                               just hang up. (default: None)
        """

        slot = self.registry.discard(participant)
        await participant.aclose()

        if slot is None:
            return

        if error is None:
            self.logger.info("%s has disconnected...", participant.name)

        else:
            self.logger.warning("%s was disconnected: %s", participant.name, error)
