"""
The broadcast router.

Decides who receives a message and writes it to each of them, one after
the other, in registry order. Delivery is best-effort: a recipient that
fails is reported back, never retried, and never stops delivery to the
remaining recipients.
"""

import logging
import typing

import attr
import trio

from chatrelay.errors import ParticipantError, participant_failure
from chatrelay.participant import Participant
from chatrelay.registry import Registry


@attr.s(auto_attribs=True)
class Delivery:
    """A failed delivery attempt."""

    recipient: Participant
    error: ParticipantError


@attr.s(auto_attribs=True)
class BroadcastRouter:
    """Routes messages between participants of a registry.

    Keyword Arguments:
        write_timeout {float} -- How long one client may take to accept a
                                 message; zero or less waits forever. (default: 5.0)
        logger {logging.Logger} -- Where routing is logged. (default: this module's)
    """

    registry: Registry
    write_timeout: float = 5.0
    logger: logging.Logger = attr.Factory(lambda: logging.getLogger(__name__))

    def recipients(self, origin: Participant) -> typing.List[Participant]:
        """Who receives a message sent by origin.

            >>> from chatrelay.participant import Participant
            >>> registry = Registry(Participant('listener'), Participant('operator'), 4)
            >>> alice, bob = Participant('alice'), Participant('bob')
            >>> _ = registry.add(alice); _ = registry.add(bob)
            >>> router = BroadcastRouter(registry)
            >>> [p.name for p in router.recipients(registry.operator)]
            ['alice', 'bob']
            >>> [p.name for p in router.recipients(alice)]
            ['operator', 'bob']

        Arguments:
            origin {Participant} -- The participant the message came from.

        Returns:
            List[Participant] -- The recipients, in delivery order.
        """

        clients = self.registry.clients()

        if origin is self.registry.operator:
            return list(clients)

        return [self.registry.operator] + [c for c in clients if c is not origin]

    async def deliver(
        self, recipient: Participant, payload: bytes
    ) -> typing.Optional[ParticipantError]:
        """Writes a whole payload to a single recipient.

        The write timeout only applies to remote clients; the operator
        channel is local and bounded.

        Returns:
            Optional[ParticipantError] -- None on success, else what went wrong.
        """

        try:
            if self.write_timeout > 0 and recipient is not self.registry.operator:
                with trio.move_on_after(self.write_timeout) as scope:
                    await recipient.send_all(payload)

                if scope.cancelled_caught:
                    return ParticipantError(
                        recipient,
                        "write timed out after {}s".format(self.write_timeout),
                    )

            else:
                await recipient.send_all(payload)

        except (trio.BrokenResourceError, trio.ClosedResourceError, OSError) as err:
            return participant_failure(recipient, err)

        return None

    async def route(self, origin: Participant, payload: bytes) -> typing.List[Delivery]:
        """Broadcasts a payload on behalf of origin.

        A message from the operator reaches every client. A message from a
        client reaches the operator first, then every other client.

        Arguments:
            origin {Participant} -- The participant the payload came from.
            payload {bytes} -- The message.

        Returns:
            List[Delivery] -- The recipients that could not be written to.
        """

        recipients = self.recipients(origin)
        failures = []

        self.logger.debug(
            "routing %d bytes from %s to %d recipients",
            len(payload),
            origin.name,
            len(recipients),
        )

        for recipient in recipients:
            error = await self.deliver(recipient, payload)

            if error is not None:
                self.logger.warning("could not write to %s: %s", recipient.name, error)
                failures.append(Delivery(recipient, error))

        return failures
