import errno
import ipaddress
import logging
import os
import selectors
import socket
import time
from typing import Optional, Tuple, Union

from src.socket_accept.accept_config import TimeoutSpec
from src.socket_accept.accept_result import AcceptedConnection, AcceptErrorKind, AcceptFailure, AcceptResult

logger = logging.getLogger(__name__)

EXECUTION_SUCCESS = 0
EXECUTION_FAILURE = 1
MAX_WAIT_SLICE = 86400.0  # seconds

ListenerHandle = Union[socket.socket, int]

# The acceptor is single-shot: it takes one connection off a listening socket
# and always closes that listener before returning, whatever the outcome.


def accept(listener: ListenerHandle, timeout: Union[TimeoutSpec, float, None] = None) -> AcceptResult:
    """Accept one connection on ``listener`` and close the listener.

    Args:
        listener: A bound, listening socket, or its file descriptor. Ownership
            passes to this call.
        timeout: Longest time to wait for a peer. None blocks indefinitely,
            zero polls once.

    Returns:
        AcceptedConnection on success, AcceptFailure on timeout or error.

    Raises:
        ValueError: ``timeout`` is negative or ``listener`` is a negative
            descriptor. A negative timeout still closes the listener.
    """
    if timeout is not None and not isinstance(timeout, TimeoutSpec):
        try:
            timeout = TimeoutSpec.from_seconds(timeout)
        except ValueError:
            _release(listener)
            raise

    try:
        sock = _as_socket(listener)
    except OSError as e:
        failure = _accept_failure(e)
        _close_descriptor(listener)
        return failure

    try:
        return _accept_one(sock, timeout)
    finally:
        _close_listener(sock)


def exit_status(result: AcceptResult) -> int:
    return EXECUTION_SUCCESS if result.ok else EXECUTION_FAILURE


def format_peer_address(address: Tuple, family: int = socket.AF_INET) -> Optional[str]:
    """Render the host part of a peer address as IPv4 dotted-decimal.

    The port is dropped. IPv4-mapped IPv6 peers yield the embedded IPv4
    address; any other family yields None.
    """
    if family == socket.AF_INET:
        return socket.inet_ntoa(socket.inet_aton(address[0]))
    if family == socket.AF_INET6:
        host = address[0].split("%", 1)[0]
        mapped = ipaddress.IPv6Address(host).ipv4_mapped
        return str(mapped) if mapped is not None else None
    return None


def _as_socket(listener: ListenerHandle) -> socket.socket:
    if isinstance(listener, socket.socket):
        return listener
    if isinstance(listener, int):
        if listener < 0:
            raise ValueError(f"{listener}: invalid socket descriptor")
        return socket.socket(fileno=listener)
    raise TypeError(f"expected a socket or file descriptor, got {type(listener).__name__}")


def _wait_readable(sock: socket.socket, timeout: TimeoutSpec) -> bool:
    """Wait until ``sock`` has a pending connection or ``timeout`` elapses.

    Long bounds are waited out in slices no longer than MAX_WAIT_SLICE so the
    selector never sees a timeout the platform cannot represent.
    """
    deadline = time.monotonic() + timeout.total_seconds()
    with selectors.DefaultSelector() as selector:
        selector.register(sock, selectors.EVENT_READ)
        while True:
            remaining = max(0.0, deadline - time.monotonic())
            if selector.select(min(remaining, MAX_WAIT_SLICE)):
                return True
            if remaining <= MAX_WAIT_SLICE:
                return False


def _accept_one(sock: socket.socket, timeout: Optional[TimeoutSpec]) -> AcceptResult:
    if sock.fileno() < 0:
        return _accept_failure(OSError(errno.EBADF, os.strerror(errno.EBADF)))

    try:
        if timeout is not None:
            logger.debug(f"Waiting up to {timeout}s for a connection on fd {sock.fileno()}")
            if not _wait_readable(sock, timeout):
                return _timeout_failure(timeout)
            # the pending peer may have gone away since the wait returned
            sock.setblocking(False)
        else:
            logger.debug(f"Waiting for a connection on fd {sock.fileno()}")
            sock.setblocking(True)
        conn, address = sock.accept()
    except BlockingIOError as e:
        if timeout is None:
            return _accept_failure(e)
        return _timeout_failure(timeout)
    except (OSError, ValueError, OverflowError) as e:
        return _accept_failure(e)

    conn.setblocking(True)
    peer_address = format_peer_address(address, conn.family)
    logger.debug(f"Accepted fd {conn.fileno()} from {peer_address}")
    return AcceptedConnection(sock=conn, fd=conn.fileno(), peer_address=peer_address)


def _timeout_failure(timeout: TimeoutSpec) -> AcceptFailure:
    message = f"accept timed out after {timeout} seconds"
    logger.info(message)
    return AcceptFailure(AcceptErrorKind.TIMEOUT, message)


def _accept_failure(e: Exception) -> AcceptFailure:
    message = f"client accept failure: {getattr(e, 'strerror', None) or e}"
    logger.error(message)
    return AcceptFailure(AcceptErrorKind.ACCEPT_FAILURE, message, getattr(e, "errno", None))


def _release(listener: ListenerHandle) -> None:
    if isinstance(listener, socket.socket):
        _close_listener(listener)
    elif isinstance(listener, int) and listener >= 0:
        _close_descriptor(listener)


def _close_listener(sock: socket.socket) -> None:
    fd = sock.fileno()
    if fd < 0:
        return
    logger.debug(f"Closing listener fd {fd}")
    sock.close()


def _close_descriptor(fd: int) -> None:
    try:
        os.close(fd)
    except OSError as e:
        logger.debug(f"Listener fd {fd} already unusable: {e}")
