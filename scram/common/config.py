"""SCRAM settings read from the environment (python-dotenv loads .env in entry points)."""

import os

from pydantic import BaseModel, ConfigDict, Field


class ScramSettings(BaseModel):
    """
    Server defaults for new credentials and nonces. Built by the caller and
    handed to each session; there is no process-wide instance.
    """

    model_config = ConfigDict(frozen=True)

    iterations: int = Field(4096, ge=1, le=2 ** 32 - 1)
    salt_length: int = Field(16, ge=1)         # bytes
    nonce_length: int = Field(24, ge=1)        # client nonce, characters
    server_nonce_length: int = Field(18, ge=1)

    @classmethod
    def from_env(cls) -> "ScramSettings":
        return cls(
            iterations=int(os.getenv("SCRAM_ITERATIONS", 4096)),
            salt_length=int(os.getenv("SCRAM_SALT_LENGTH", 16)),
            nonce_length=int(os.getenv("SCRAM_NONCE_LENGTH", 24)),
            server_nonce_length=int(os.getenv("SCRAM_SERVER_NONCE_LENGTH", 18)),
        )
