from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union
import socket


class AcceptErrorKind(Enum):
    TIMEOUT = "timeout"                 # no connection within the bound
    ACCEPT_FAILURE = "accept_failure"   # the accept primitive reported an error


@dataclass(frozen=True)
class AcceptedConnection:
    """A connection taken off a listener; the caller owns ``sock``."""
    sock: socket.socket
    fd: int
    peer_address: Optional[str] = None

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class AcceptFailure:
    kind: AcceptErrorKind
    message: str
    errno: Optional[int] = None

    @property
    def ok(self) -> bool:
        return False

    def is_timeout(self) -> bool:
        return self.kind is AcceptErrorKind.TIMEOUT


AcceptResult = Union[AcceptedConnection, AcceptFailure]
