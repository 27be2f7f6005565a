"""
The participant registry.

Slot 0 always holds the listener, slot 1 always holds the operator channel,
and every slot from 2 onwards holds a remote client. The client tail never
has gaps: removing a client shifts the ones after it left by one, keeping
their relative order.
"""

import typing

from chatrelay.errors import RegistryError, RegistryFullError
from chatrelay.participant import Participant

LISTENER_SLOT = 0
OPERATOR_SLOT = 1
FIRST_CLIENT_SLOT = 2


class Registry:
    """The ordered set of everything the event loop watches.

        >>> registry = Registry(Participant('listener'), Participant('operator'), 2)
        >>> alice, bob, carol = Participant('alice'), Participant('bob'), Participant('carol')
        >>> registry.add(alice), registry.add(bob)
        (2, 3)
        >>> registry.add(carol)
        Traceback (most recent call last):
            ...
        chatrelay.errors.RegistryFullError: registry is full (2 clients)
        >>> registry.remove(2)
        Participant('alice')
        >>> registry.slot_of(bob)
        2
        >>> registry.add(carol)
        3
        >>> [p.name for p in registry]
        ['listener', 'operator', 'bob', 'carol']
    """

    def __init__(self, listener: Participant, operator: Participant, max_clients: int):
        """
        Arguments:
            listener {Participant} -- The participant occupying slot 0.
            operator {Participant} -- The participant occupying slot 1.
            max_clients {int} -- How many remote clients may be registered at once.
        """

        if max_clients < 0:
            raise ValueError("max_clients must not be negative")

        self.max_clients = max_clients
        self._slots = [listener, operator]  # type: typing.List[Participant]

    def __len__(self) -> int:
        return len(self._slots)

    def __iter__(self) -> typing.Iterator[Participant]:
        return iter(tuple(self._slots))

    def __contains__(self, participant: Participant) -> bool:
        return any(p is participant for p in self._slots)

    def __getitem__(self, slot: int) -> Participant:
        return self._slots[slot]

    def __repr__(self):
        return "Registry({} of {} clients)".format(self.client_count(), self.max_clients)

    @property
    def listener(self) -> Participant:
        return self._slots[LISTENER_SLOT]

    @property
    def operator(self) -> Participant:
        return self._slots[OPERATOR_SLOT]

    def clients(self) -> typing.Tuple[Participant, ...]:
        """A snapshot of the remote clients, in slot order."""
        return tuple(self._slots[FIRST_CLIENT_SLOT:])

    def client_count(self) -> int:
        return len(self._slots) - FIRST_CLIENT_SLOT

    def is_full(self) -> bool:
        return self.client_count() >= self.max_clients

    def slot_of(self, participant: Participant) -> typing.Optional[int]:
        """The slot a participant occupies, or None if it is not registered.

        Compared by identity, never by equality.
        """

        for slot, registered in enumerate(self._slots):
            if registered is participant:
                return slot

        return None

    def add(self, participant: Participant) -> int:
        """Registers a remote client at the end of the tail.

        Arguments:
            participant {Participant} -- The client to register.

        Raises:
            RegistryFullError: The registry already holds max_clients clients.
            RegistryError: The participant is already registered.

        Returns:
            int -- The slot it now occupies.
        """

        if participant in self:
            raise RegistryError("{} is already registered".format(participant.name))

        if self.is_full():
            raise RegistryFullError(
                "registry is full ({} clients)".format(self.max_clients)
            )

        self._slots.append(participant)
        return len(self._slots) - 1

    def remove(self, slot: int) -> Participant:
        """Deregisters the client at a slot, compacting the tail.

            >>> registry = Registry(Participant('listener'), Participant('operator'), 4)
            >>> registry.remove(1)
            Traceback (most recent call last):
                ...
            chatrelay.errors.RegistryError: slot 1 is not a client slot

        Arguments:
            slot {int} -- The slot to free; must be a client slot.

        Raises:
            RegistryError: The slot is one of the fixed slots, or is empty.

        Returns:
            Participant -- The removed participant.
        """

        if slot < FIRST_CLIENT_SLOT:
            raise RegistryError("slot {} is not a client slot".format(slot))

        if slot >= len(self._slots):
            raise RegistryError("slot {} is empty".format(slot))

        return self._slots.pop(slot)

    def discard(self, participant: Participant) -> typing.Optional[int]:
        """Removes a client wherever it is. Returns the slot it occupied,
        or None if it was not registered."""

        slot = self.slot_of(participant)

        if slot is None:
            return None

        self.remove(slot)
        return slot

    def for_each(self, visitor: typing.Callable[[int, Participant], typing.Any]):
        """Calls visitor(slot, participant) for every slot, in order.

        Iterates over a snapshot, so the visitor may not observe changes it
        makes to the registry.

            >>> registry = Registry(Participant('listener'), Participant('operator'), 4)
            >>> _ = registry.add(Participant('alice'))
            >>> registry.for_each(lambda slot, p: print(slot, p.name))
            0 listener
            1 operator
            2 alice
        """

        for slot, participant in enumerate(tuple(self._slots)):
            visitor(slot, participant)
