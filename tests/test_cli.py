import socket

import pytest
import trio.testing

from chatrelay import cli


@pytest.fixture
def fake_stdio(monkeypatch):
    stdin = trio.testing.MemoryReceiveStream()
    stdout = trio.testing.MemorySendStream()
    monkeypatch.setattr(cli, "open_stdio", lambda: (stdin, stdout))

    return stdin, stdout


@pytest.fixture
def busy_port():
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(1)

    yield sock.getsockname()[1]

    sock.close()


@pytest.fixture
def free_port():
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()

    return port


def test_server_defaults():
    args = cli.build_server_parser().parse_args([])

    assert args.port == 5055
    assert args.host is None
    assert args.max_clients == 8


def test_client_h_means_host():
    args = cli.build_client_parser().parse_args(["-h", "login02"])

    assert args.host == "login02"
    assert args.port == 5055


def test_client_help(capsys):
    with pytest.raises(SystemExit) as exc_info:
        cli.build_client_parser().parse_args(["--help"])

    assert exc_info.value.code == 0
    assert "usage: chatrelay-client" in capsys.readouterr().out


def test_invalid_settings_are_usage_errors(fake_stdio):
    with pytest.raises(SystemExit) as exc_info:
        cli.server_main(["-b", "0"])

    assert exc_info.value.code == 2


def test_server_exits_cleanly_when_operator_input_ends(fake_stdio):
    stdin, _ = fake_stdio
    stdin.put_eof()

    assert cli.server_main(["-H", "127.0.0.1", "-p", "0"]) == cli.EXIT_OK


def test_server_setup_failure_exits_non_zero(fake_stdio, busy_port):
    assert cli.server_main(["-H", "127.0.0.1", "-p", str(busy_port)]) == cli.EXIT_FAILURE


def test_client_setup_failure_exits_non_zero(fake_stdio, free_port):
    assert cli.client_main(["-h", "127.0.0.1", "-p", str(free_port)]) == cli.EXIT_FAILURE
