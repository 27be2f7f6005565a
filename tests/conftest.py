import pytest
import trio

from chatrelay import Relay, RelayConfig


@pytest.fixture
def relay_config():
    return RelayConfig(
        host="127.0.0.1", port=0, max_clients=2, poll_timeout=0.05, write_timeout=1.0
    )


@pytest.fixture
async def relay(nursery, relay_config):
    return await nursery.start(Relay(relay_config).serve)


@pytest.fixture
def connect(relay):
    async def _connect():
        return await trio.open_tcp_stream("127.0.0.1", relay.port)

    return _connect
