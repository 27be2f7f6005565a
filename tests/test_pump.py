import pytest
import trio
import trio.testing

from chatrelay.errors import PumpError
from chatrelay.pump import LOCAL, REMOTE, pump


async def test_local_end_of_stream_stops_the_pump():
    local_in = trio.testing.MemoryReceiveStream()
    local_out = trio.testing.MemorySendStream()
    remote, peer = trio.testing.memory_stream_pair()

    local_in.put_data(b"typed")
    local_in.put_eof()

    with trio.fail_after(2):
        assert await pump(local_in, local_out, remote, 64) == LOCAL

    assert await peer.receive_some() == b"typed"


async def test_remote_end_of_stream_stops_the_pump():
    local_in = trio.testing.MemoryReceiveStream()
    local_out = trio.testing.MemorySendStream()
    remote, peer = trio.testing.memory_stream_pair()

    await peer.send_all(b"bye")
    await peer.aclose()

    with trio.fail_after(2):
        assert await pump(local_in, local_out, remote, 64) == REMOTE

    assert local_out.get_data_nowait() == b"bye"


async def test_chunks_respect_buffer_size():
    local_in = trio.testing.MemoryReceiveStream()
    local_out = trio.testing.MemorySendStream()
    sink = trio.testing.MemorySendStream()
    writes = []

    async def _record():
        writes.append(sink.get_data_nowait())

    sink.send_all_hook = _record
    remote = trio.StapledStream(sink, trio.testing.MemoryReceiveStream())

    local_in.put_data(b"0123456789")
    local_in.put_eof()

    assert await pump(local_in, local_out, remote, 4) == LOCAL
    assert writes == [b"0123", b"4567", b"89"]


async def test_broken_remote_raises():
    local_in = trio.testing.MemoryReceiveStream()
    local_out = trio.testing.MemorySendStream()
    remote, peer = trio.testing.memory_stream_pair()

    await remote.aclose()
    local_in.put_data(b"lost")

    with pytest.raises(PumpError):
        with trio.fail_after(2):
            await pump(local_in, local_out, remote, 64)
