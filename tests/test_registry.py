import pytest

from chatrelay.errors import RegistryError, RegistryFullError
from chatrelay.participant import Participant
from chatrelay.registry import FIRST_CLIENT_SLOT, LISTENER_SLOT, OPERATOR_SLOT, Registry


def make_registry(max_clients=3):
    return Registry(Participant("listener"), Participant("operator"), max_clients)


def test_fixed_slots():
    registry = make_registry()

    assert registry[LISTENER_SLOT] is registry.listener
    assert registry[OPERATOR_SLOT] is registry.operator
    assert registry.clients() == ()
    assert len(registry) == FIRST_CLIENT_SLOT


def test_add_appends_to_tail():
    registry = make_registry()
    alice, bob = Participant("alice"), Participant("bob")

    assert registry.add(alice) == 2
    assert registry.add(bob) == 3
    assert registry.clients() == (alice, bob)


def test_add_past_capacity_is_refused():
    registry = make_registry(max_clients=1)
    registry.add(Participant("alice"))

    with pytest.raises(RegistryFullError):
        registry.add(Participant("bob"))

    assert registry.client_count() == 1
    assert registry.is_full()


def test_zero_capacity_refuses_everyone():
    registry = make_registry(max_clients=0)

    with pytest.raises(RegistryFullError):
        registry.add(Participant("alice"))


def test_add_twice_is_refused():
    registry = make_registry()
    alice = Participant("alice")
    registry.add(alice)

    with pytest.raises(RegistryError):
        registry.add(alice)


def test_remove_compacts_preserving_order():
    registry = make_registry()
    alice, bob, carol = Participant("alice"), Participant("bob"), Participant("carol")

    for p in (alice, bob, carol):
        registry.add(p)

    assert registry.remove(3) is bob
    assert registry.clients() == (alice, carol)
    assert registry.slot_of(carol) == 3
    assert registry.slot_of(bob) is None


@pytest.mark.parametrize("slot", [LISTENER_SLOT, OPERATOR_SLOT])
def test_fixed_slots_cannot_be_removed(slot):
    registry = make_registry()

    with pytest.raises(RegistryError):
        registry.remove(slot)


def test_remove_empty_slot():
    registry = make_registry()

    with pytest.raises(RegistryError):
        registry.remove(2)


def test_discard_unknown_participant():
    registry = make_registry()

    assert registry.discard(Participant("stranger")) is None


def test_slot_of_uses_identity():
    registry = make_registry()
    first, twin = Participant("same"), Participant("same")
    registry.add(first)

    assert twin not in registry
    assert registry.slot_of(twin) is None


def test_repeated_cycles_at_same_slot_keep_tail_contiguous():
    registry = make_registry(max_clients=2)
    steady = Participant("steady")
    registry.add(steady)

    for round_ in range(20):
        visitor = Participant("visitor-{}".format(round_))

        assert registry.add(visitor) == 3
        assert registry.discard(visitor) == 3
        assert registry.clients() == (steady,)

    assert [p.name for p in registry] == ["listener", "operator", "steady"]


def test_for_each_visits_snapshot_in_order():
    registry = make_registry()
    alice, bob = Participant("alice"), Participant("bob")
    registry.add(alice)
    registry.add(bob)
    seen = []

    def visitor(slot, participant):
        seen.append((slot, participant.name))

        if participant is alice:
            registry.discard(alice)

    registry.for_each(visitor)

    assert seen == [(0, "listener"), (1, "operator"), (2, "alice"), (3, "bob")]
    assert registry.clients() == (bob,)
