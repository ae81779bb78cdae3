"""Credential record + store interface shared by the in-memory and MySQL stores."""

from typing import Optional, Protocol

from pydantic import BaseModel, ConfigDict


class Credential(BaseModel):
    """username → (salt, iterations, StoredKey, ServerKey). Never the password."""

    model_config = ConfigDict(frozen=True)

    username: str
    salt: bytes
    iterations: int
    stored_key: bytes
    server_key: bytes


class CredentialStore(Protocol):
    def lookup(self, username: str) -> Optional[Credential]:
        ...

    def save(self, username: str, salt: bytes, iterations: int,
             stored_key: bytes, server_key: bytes) -> None:
        ...
