"""Dict-backed credential store."""

from typing import Dict, Optional

from scram.storage.records import Credential


class InMemoryCredentialStore:

    def __init__(self):
        self._records: Dict[str, Credential] = {}

    def lookup(self, username: str) -> Optional[Credential]:
        return self._records.get(username)

    def save(self, username: str, salt: bytes, iterations: int,
             stored_key: bytes, server_key: bytes) -> None:
        self._records[username] = Credential(
            username=username,
            salt=salt,
            iterations=iterations,
            stored_key=stored_key,
            server_key=server_key,
        )

    def __contains__(self, username: str) -> bool:
        return username in self._records

    def __len__(self) -> int:
        return len(self._records)
