import errno

import trio

from chatrelay.participant import Participant
from chatrelay.registry import Registry
from chatrelay.router import BroadcastRouter
from tests.util import FakeParticipant


def make_router(*clients, write_timeout=1.0):
    registry = Registry(Participant("listener"), FakeParticipant("operator"), 8)

    for client in clients:
        registry.add(client)

    return BroadcastRouter(registry, write_timeout), registry


async def test_operator_message_reaches_every_client_only():
    alice, bob = FakeParticipant("alice"), FakeParticipant("bob")
    router, registry = make_router(alice, bob)

    failures = await router.route(registry.operator, b"welcome")

    assert failures == []
    assert alice.sent == [b"welcome"]
    assert bob.sent == [b"welcome"]
    assert registry.operator.sent == []


async def test_client_message_skips_its_origin():
    alice, bob, carol = FakeParticipant("alice"), FakeParticipant("bob"), FakeParticipant("carol")
    router, registry = make_router(alice, bob, carol)

    await router.route(bob, b"hi")

    assert registry.operator.sent == [b"hi"]
    assert alice.sent == [b"hi"]
    assert carol.sent == [b"hi"]
    assert bob.sent == []


async def test_lone_client_only_reaches_operator():
    alice = FakeParticipant("alice")
    router, registry = make_router(alice)

    assert router.recipients(alice) == [registry.operator]


async def test_failed_recipient_does_not_stop_delivery():
    alice = FakeParticipant("alice")
    bob = FakeParticipant("bob", error=trio.BrokenResourceError("gone"))
    carol = FakeParticipant("carol")
    router, registry = make_router(alice, bob, carol)

    failures = await router.route(registry.operator, b"news")

    assert [f.recipient for f in failures] == [bob]
    assert failures[0].error.participant is bob
    assert isinstance(failures[0].error.__cause__, trio.BrokenResourceError)
    assert alice.sent == [b"news"]
    assert carol.sent == [b"news"]


async def test_os_errors_are_reported_as_failures():
    alice = FakeParticipant("alice", error=ConnectionResetError(errno.ECONNRESET, "reset"))
    router, registry = make_router(alice)

    failures = await router.route(registry.operator, b"x")

    assert "ConnectionResetError" in str(failures[0].error)


async def test_stalled_client_times_out():
    alice = FakeParticipant("alice", stall=True)
    bob = FakeParticipant("bob")
    router, registry = make_router(alice, bob, write_timeout=0.05)

    with trio.fail_after(2):
        failures = await router.route(registry.operator, b"tick")

    assert [f.recipient for f in failures] == [alice]
    assert "timed out" in str(failures[0].error)
    assert bob.sent == [b"tick"]
