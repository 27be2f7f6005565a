"""
The relay server: a listener, an operator channel and an event loop,
wired together.
"""

import logging
import typing

import trio

from chatrelay.config import RelayConfig
from chatrelay.errors import PumpError, RelayError
from chatrelay.loop import EventLoop
from chatrelay.monitor import OperatorEndpoint, open_operator_channel, run_monitor
from chatrelay.participant import ListenerParticipant, OperatorParticipant
from chatrelay.registry import Registry
from chatrelay.router import BroadcastRouter
from chatrelay.transport import open_listeners


class Relay:
    """
    A chat relay.

    Use serve() to run it with the operator channel left to the caller
    (reachable as the ``operator`` attribute), or run_with_monitor() to
    hand the operator channel to a local terminal.
    """

    def __init__(
        self,
        config: typing.Optional[RelayConfig] = None,
        logger: typing.Optional[logging.Logger] = None,
    ):
        """
        Keyword Arguments:
            config {RelayConfig} -- The relay's settings. (default: RelayConfig())
            logger {logging.Logger} -- Where the relay logs. (default: this module's)
        """

        self.config = config or RelayConfig()
        self.logger = logger or logging.getLogger(__name__)

        self.listeners = []  # type: typing.List[trio.SocketListener]
        self.operator = None  # type: typing.Optional[OperatorEndpoint]
        self.loop = None  # type: typing.Optional[EventLoop]

    def __repr__(self):
        return "Relay(port={}, max_clients={})".format(
            self.port if self.listeners else self.config.port, self.config.max_clients
        )

    @property
    def port(self) -> int:
        """The port actually listened on; differs from the configured
        one when that was 0."""

        if not self.listeners:
            raise RuntimeError("relay is not listening yet")

        return self.listeners[0].socket.getsockname()[1]

    @property
    def registry(self) -> Registry:
        if self.loop is None:
            raise RuntimeError("relay is not open yet")

        return self.loop.registry

    async def open(self):
        """Binds the listener(s) and builds the event loop.

        Raises:
            RelaySetupError: The listener could not be brought up.
        """

        config = self.config

        self.listeners = await open_listeners(
            config.port, host=config.host, backlog=config.backlog
        )

        relay_end, self.operator = open_operator_channel(config.operator_buffer)

        registry = Registry(
            ListenerParticipant(self.listeners),
            OperatorParticipant(relay_end),
            config.max_clients,
        )

        router = BroadcastRouter(registry, config.write_timeout, logger=self.logger)

        self.loop = EventLoop(
            registry,
            router,
            buffer_size=config.buffer_size,
            timeout=config.poll_timeout,
            logger=self.logger,
        )

    async def serve(self, task_status=trio.TASK_STATUS_IGNORED):
        """Runs the relay until its operator channel ends.

        Works with nursery.start, which then returns this Relay once it is
        listening.
        """

        if self.loop is None:
            await self.open()

        task_status.started(self)
        await self.loop.run()

    async def run_with_monitor(
        self, stdin: trio.abc.ReceiveStream, stdout: trio.abc.SendStream
    ):
        """Runs the relay with a monitor on the given streams.

        Returns once the operator's input ends.

        Raises:
            RelaySetupError: The listener could not be brought up.
            RelayError: The relay or the monitor failed unrecoverably.
        """

        if self.loop is None:
            await self.open()

        failures = []  # type: typing.List[RelayError]

        async def _monitor():
            try:
                await run_monitor(self.operator, stdin, stdout, self.config.buffer_size)

            except PumpError as err:
                self.logger.error("monitor failed: %s", err)
                failures.append(err)

        async with trio.open_nursery() as nursery:
            nursery.start_soon(_monitor)

            try:
                await self.loop.run()

            except RelayError as err:
                failures.append(err)

            nursery.cancel_scope.cancel()

        if failures:
            raise failures[0]
