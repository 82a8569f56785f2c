import logging
from typing import Iterable, MutableMapping, Optional

from src.socket_accept.accept_config import DEFAULT_FD_NAME
from src.socket_accept.accept_result import AcceptResult

logger = logging.getLogger(__name__)


class OutputBindings:
    """Writes an accept result into named slots of a caller-owned namespace.

    Binding is all-or-nothing: a success sets the connection slot (and the
    peer slot when one was requested), a failure unsets both so a stale
    descriptor or address from an earlier call cannot be read as fresh.
    """

    def __init__(self, namespace: MutableMapping[str, str], fd_name: Optional[str] = None,
                 peer_name: Optional[str] = None, readonly: Iterable[str] = ()):
        self.namespace = namespace
        self.fd_name = fd_name or DEFAULT_FD_NAME
        self.peer_name = peer_name
        self.readonly = frozenset(readonly)

    def apply(self, result: AcceptResult) -> bool:
        if not result.ok:
            self.clear()
            return False

        self._bind(self.fd_name, str(result.fd))
        if self.peer_name:
            if result.peer_address is None:
                self._unbind(self.peer_name)
            else:
                self._bind(self.peer_name, result.peer_address)
        return True

    def clear(self) -> None:
        self._unbind(self.fd_name)
        if self.peer_name:
            self._unbind(self.peer_name)

    def _bind(self, name: str, value: str) -> bool:
        if name in self.readonly:
            logger.error(f"{name}: cannot set variable")
            return False
        self.namespace[name] = value
        return True

    def _unbind(self, name: str) -> bool:
        if name in self.readonly:
            logger.error(f"{name}: cannot unset variable")
            return False
        self.namespace.pop(name, None)
        return True
