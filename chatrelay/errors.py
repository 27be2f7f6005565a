"""
Exceptions raised by chatrelay, and the helper that classifies
raw I/O failures into them.
"""

import errno

import trio


class RelayError(Exception):
    """
    A common superclass for all
    exceptions regarding chatrelay.
    """

    pass


# == Setup errors ==


class RelaySetupError(RelayError):
    """
    Raised when the transport could not be brought up
    (address resolution, bind, listen, connect). Always
    fatal to the process.
    """

    pass


# == I/O errors ==


class TransientIOError(RelayError):
    """
    A "would block" or interrupted I/O condition. Never
    fatal; it only means there is no work this turn.

    trio's socket streams and listeners absorb EAGAIN
    themselves, so this mostly turns up from other
    stream implementations. Readers retry on it, and on
    the equivalent raw OSErrors (see is_transient).
    """

    pass


class ParticipantError(RelayError):
    """
    An I/O failure that only concerns a single participant.
    The event loop disconnects that participant and keeps
    serving everyone else.
    """

    def __init__(self, participant, message: str):
        super().__init__(message)
        self.participant = participant


class OperatorChannelError(RelayError):
    """
    Raised when the operator channel itself fails. The relay
    cannot run without it, so this is fatal.
    """

    pass


class PumpError(RelayError):
    """
    Raised when a two-way pump (client or monitor) hits an
    unrecoverable I/O error on either side.
    """

    pass


# == Registry errors ==


class RegistryError(RelayError):
    """
    A common superclass for all exceptions involving
    chatrelay.registry.Registry.
    """

    pass


class RegistryFullError(RegistryError):
    """
    Raised when adding a client to a registry that already
    holds its configured maximum of remote clients.
    """

    pass


TRANSIENT_ERRNOS = frozenset({errno.EAGAIN, errno.EWOULDBLOCK, errno.EINTR})


def is_transient(err: BaseException) -> bool:
    """Whether an I/O exception only means "try again later".

        >>> is_transient(BlockingIOError(errno.EAGAIN, 'busy'))
        True
        >>> is_transient(TransientIOError('nothing yet'))
        True
        >>> is_transient(ConnectionResetError(errno.ECONNRESET, 'reset'))
        False
        >>> is_transient(trio.BrokenResourceError())
        False

    Arguments:
        err {BaseException} -- The exception to classify.

    Returns:
        bool -- True for would-block and interrupted conditions.
    """

    if isinstance(err, TransientIOError):
        return True

    if isinstance(err, OSError):
        return err.errno in TRANSIENT_ERRNOS

    return False


def participant_failure(participant, err: BaseException) -> ParticipantError:
    """Wraps a raw I/O exception into a ParticipantError.

        >>> failure = participant_failure('peer', trio.BrokenResourceError('gone'))
        >>> failure.participant
        'peer'
        >>> str(failure)
        'BrokenResourceError: gone'

    Arguments:
        participant {Participant} -- The participant the failure concerns.
        err {BaseException} -- The original exception.

    Returns:
        ParticipantError -- The typed error, chained to the original.
    """

    if isinstance(err, ParticipantError):
        return err

    failure = ParticipantError(
        participant, "{}: {}".format(type(err).__name__, str(err))
    )
    failure.__cause__ = err

    return failure
