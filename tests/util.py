"""Helpers shared by the test modules."""

import trio

from chatrelay.participant import Participant


async def receive_exactly(stream, size: int, timeout: float = 2.0) -> bytes:
    """Reads until size bytes arrived or the stream ended."""

    data = b""

    with trio.fail_after(timeout):
        while len(data) < size:
            chunk = await stream.receive_some(size - len(data))

            if not chunk:
                break

            data += chunk

    return data


async def assert_silent(stream, delay: float = 0.2):
    """Fails if anything arrives on stream within delay seconds."""

    with trio.move_on_after(delay):
        data = await stream.receive_some(1024)
        raise AssertionError("unexpected data: {!r}".format(data))


async def wait_for_clients(relay, count: int, timeout: float = 2.0):
    with trio.fail_after(timeout):
        while relay.registry.client_count() != count:
            await trio.sleep(0.01)


class FakeParticipant(Participant):
    """A participant that records what is written to it."""

    kind = "fake"

    def __init__(self, name: str, error: BaseException = None, stall: bool = False):
        super().__init__(name)
        self.sent = []
        self.error = error
        self.stall = stall

    async def watch(self, inbox, buffer_size):
        await trio.sleep_forever()

    async def send_all(self, data):
        if self.stall:
            await trio.sleep_forever()

        if self.error is not None:
            raise self.error

        await trio.lowlevel.checkpoint()
        self.sent.append(bytes(data))

    async def aclose(self):
        self.closed = True
