"""Configuration objects for the relay and the client."""

import typing

import attr

DEFAULT_PORT = 5055
DEFAULT_HOST = "localhost"

# Ten poll slots, two of which are taken by the listener and the operator.
DEFAULT_MAX_CLIENTS = 8
DEFAULT_BUFFER_SIZE = 1024


def _valid_port(instance, attribute, value):
    if not 0 <= value <= 65535:
        raise ValueError("{} must be within 0-65535, got {}".format(attribute.name, value))


def _positive(instance, attribute, value):
    if value <= 0:
        raise ValueError("{} must be positive, got {}".format(attribute.name, value))


def _non_negative(instance, attribute, value):
    if value < 0:
        raise ValueError("{} must not be negative, got {}".format(attribute.name, value))


@attr.s(auto_attribs=True, frozen=True)
class RelayConfig:
    """Settings of a relay server.

        >>> RelayConfig().port
        5055
        >>> RelayConfig(max_clients=2).backlog
        2
        >>> RelayConfig(buffer_size=0)
        Traceback (most recent call last):
            ...
        ValueError: buffer_size must be positive, got 0

    Keyword Arguments:
        port {int} -- The TCP port to listen on; 0 picks a free one. (default: 5055)
        host {Optional[str]} -- The address to bind, or None for every interface.
                                (default: None)
        max_clients {int} -- The maximum of concurrently connected remote clients.
                             (default: 8)
        buffer_size {int} -- The largest chunk read in one go, i.e. the largest
                             message. (default: 1024)
        poll_timeout {float} -- How long the event loop may sleep before waking up
                                anyway; zero or less blocks indefinitely. (default: 0.1)
        write_timeout {float} -- How long a single recipient may stall a broadcast
                                 before it is disconnected; zero or less waits
                                 forever. (default: 5.0)
        operator_buffer {int} -- How many chunks the operator channel holds in
                                 each direction. (default: 16)
    """

    port: int = attr.ib(default=DEFAULT_PORT, validator=_valid_port)
    host: typing.Optional[str] = None
    max_clients: int = attr.ib(default=DEFAULT_MAX_CLIENTS, validator=_non_negative)
    buffer_size: int = attr.ib(default=DEFAULT_BUFFER_SIZE, validator=_positive)
    poll_timeout: float = 0.1
    write_timeout: float = 5.0
    operator_buffer: int = attr.ib(default=16, validator=_non_negative)

    @property
    def backlog(self) -> int:
        """The listen backlog, which matches the capacity bound."""
        return max(self.max_clients, 1)


@attr.s(auto_attribs=True, frozen=True)
class ClientConfig:
    """Settings of a chat client.

        >>> ClientConfig().host
        'localhost'
        >>> ClientConfig(port=70000)
        Traceback (most recent call last):
            ...
        ValueError: port must be within 0-65535, got 70000

    Keyword Arguments:
        host {str} -- The relay's host name or address. (default: 'localhost')
        port {int} -- The relay's TCP port. (default: 5055)
        buffer_size {int} -- The largest chunk read in one go. (default: 1024)
    """

    host: str = DEFAULT_HOST
    port: int = attr.ib(default=DEFAULT_PORT, validator=_valid_port)
    buffer_size: int = attr.ib(default=DEFAULT_BUFFER_SIZE, validator=_positive)
