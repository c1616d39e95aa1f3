import logging
from typing import MutableMapping, Optional

logger = logging.getLogger(__name__)

class ClientStore:
    """
    Client-local state (the signed Flask session cookie in production).

    Values are JSON strings that are loaded on request start, overwritten
    wholesale on change and removed on explicit clear. Nothing is merged and
    nothing is shared between browsers.
    """

    def __init__(self, backend: MutableMapping):
        self.backend = backend

    def load(self, key: str) -> Optional[str]:
        return self.backend.get(key)

    def save(self, key: str, value: str) -> None:
        self.backend[key] = value

    def clear(self, key: str) -> None:
        self.backend.pop(key, None)
