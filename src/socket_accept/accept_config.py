from dataclasses import dataclass
from typing import Optional
import re

DEFAULT_FD_NAME = "ACCEPT_FD"
DEFAULT_BIND_ADDRESS = "0.0.0.0"
DEFAULT_BACKLOG = 1
MAX_PORT = 65535
USEC_PER_SEC = 1000000

# seconds, optional fraction; a bare fraction (".5") is allowed
_TIMEOUT_PATTERN = re.compile(r"^\s*(\d*)(?:\.(\d*))?\s*$")


@dataclass(frozen=True)
class TimeoutSpec:
    """Non-negative wait bound with microsecond resolution.

    ``seconds == microseconds == 0`` is a valid bound meaning "poll once".
    """
    seconds: int = 0
    microseconds: int = 0

    def __post_init__(self):
        if self.seconds < 0 or self.microseconds < 0:
            raise ValueError("timeout must be non-negative")
        if self.microseconds >= USEC_PER_SEC:
            raise ValueError(f"microseconds out of range: {self.microseconds}")

    @classmethod
    def parse(cls, text: str) -> "TimeoutSpec":
        """Parse ``N``, ``N.F`` or ``.F`` into a TimeoutSpec.

        Fractional digits beyond microseconds are truncated. Anything else,
        negatives included, raises ValueError.
        """
        match = _TIMEOUT_PATTERN.match(text)
        if match is None or not (match.group(1) or match.group(2)):
            raise ValueError(f"{text}: invalid timeout specification")
        whole, fraction = match.group(1), match.group(2) or ""
        seconds = int(whole) if whole else 0
        microseconds = int(fraction[:6].ljust(6, "0"))
        return cls(seconds, microseconds)

    @classmethod
    def from_seconds(cls, value: float) -> "TimeoutSpec":
        if value < 0:
            raise ValueError(f"{value}: invalid timeout specification")
        seconds = int(value)
        microseconds = int(round((value - seconds) * USEC_PER_SEC))
        if microseconds >= USEC_PER_SEC:
            seconds, microseconds = seconds + 1, 0
        return cls(seconds, microseconds)

    def total_seconds(self) -> float:
        return self.seconds + self.microseconds / USEC_PER_SEC

    def is_poll(self) -> bool:
        return self.seconds == 0 and self.microseconds == 0

    def __str__(self):
        return f"{self.total_seconds():g}"


@dataclass
class AcceptConfig:
    fd_name: str = DEFAULT_FD_NAME
    peer_name: Optional[str] = None
    bind_address: str = DEFAULT_BIND_ADDRESS
    backlog: int = DEFAULT_BACKLOG
    timeout: Optional[TimeoutSpec] = None


def parse_port(text: str) -> int:
    """Validate a listening port number, 0 through 65535."""
    try:
        port = int(text)
    except ValueError:
        raise ValueError(f"{text}: invalid port number") from None
    if port < 0 or port > MAX_PORT:
        raise ValueError(f"{text}: invalid port number")
    return port
