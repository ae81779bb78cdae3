"""Server side of one SCRAM-SHA-1 handshake. No sockets; messages are plain strings."""

import secrets
from contextlib import contextmanager
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict

from scram.common.config import ScramSettings
from scram.common.errors import (
    ClientNonceMismatch, ClientProofMismatch, DecodingError, ScramError,
    ServerKeyMissing, UnexpectedMessage
)
from scram.common.protocol import (
    CHANNEL_BINDING, AuthMessage, ClientFinal, ClientFirst, ServerFinal, ServerFirst
)
from scram.crypto import engine
from scram.crypto.nonce import NonceGenerator
from scram.crypto.primitives import DIGEST_SIZE
from scram.storage.records import Credential, CredentialStore


class ServerState(str, Enum):
    START = "start"
    REGISTERED = "registered"
    AWAITING_CLIENT_FINAL = "awaiting_client_final"
    COMPLETED = "completed"
    FAILED = "failed"


# -------------------- STATE VARIANTS -------------------- #
# Each variant holds only what is valid in that state.

class _State(BaseModel):
    model_config = ConfigDict(frozen=True)


class _Start(_State):
    pass


class _Registered(_State):
    username: str


class _AwaitingClientFinal(_State):
    credential: Credential
    client_first_bare: str
    server_first: ServerFirst


class _AwaitingClientFinalWithoutKeys(_State):
    """Unknown user: a decoy challenge was sent, nothing can be verified."""
    username: str
    server_first: ServerFirst


class _Completed(_State):
    username: str


class _Failed(_State):
    reason: str


_STATE_NAMES = {
    _Start: ServerState.START,
    _Registered: ServerState.REGISTERED,
    _AwaitingClientFinal: ServerState.AWAITING_CLIENT_FINAL,
    _AwaitingClientFinalWithoutKeys: ServerState.AWAITING_CLIENT_FINAL,
    _Completed: ServerState.COMPLETED,
    _Failed: ServerState.FAILED,
}


class ServerSession:
    """
    One handshake, one session object. A failed or completed session is
    terminal; a new attempt needs a new ServerSession.
    """

    def __init__(self, store: CredentialStore, settings: Optional[ScramSettings] = None,
                 nonce_generator: Optional[NonceGenerator] = None):
        self.store = store
        self.settings = settings or ScramSettings()
        self._nonces = nonce_generator or NonceGenerator()
        self._state: _State = _Start()

    # -------------------- STATE -------------------- #

    @property
    def state(self) -> ServerState:
        return _STATE_NAMES[type(self._state)]

    @property
    def username(self) -> Optional[str]:
        """Authenticated username once the handshake completed."""
        if isinstance(self._state, _Completed):
            return self._state.username
        return None

    @property
    def failure(self) -> Optional[str]:
        if isinstance(self._state, _Failed):
            return self._state.reason
        return None

    @contextmanager
    def _abort_on_error(self):
        try:
            yield
        except ScramError as e:
            # a finished session keeps its outcome
            if not isinstance(self._state, (_Completed, _Failed)):
                self._state = _Failed(reason=type(e).__name__)
            raise

    def _expect(self, *states):
        if not isinstance(self._state, states):
            raise UnexpectedMessage(f"server session is in state '{self.state.value}'")
        return self._state

    # -------------------- REGISTRATION -------------------- #

    def register(self, username: str, password: str, salt: bytes, rounds: int) -> Credential:
        """
        Derive StoredKey/ServerKey and hand them to the store.
        The password is dropped once the keys are derived.
        """
        with self._abort_on_error():
            self._expect(_Start, _Registered)
            keys = engine.derive_keys(password, salt, rounds)
            self.store.save(username, salt, rounds, keys.stored_key, keys.server_key)
            self._state = _Registered(username=username)
        return self.store.lookup(username)

    # -------------------- FIRST ROUND -------------------- #

    def process_client_first(self, message: Union[str, ClientFirst]) -> ServerFirst:
        with self._abort_on_error():
            self._expect(_Start, _Registered)
            client_first = _as_message(ClientFirst, message)

            nonce = client_first.nonce + self._nonces.generate(self.settings.server_nonce_length)
            credential = self.store.lookup(client_first.username)

            if credential is None:
                # same shape of answer as for a known user
                server_first = ServerFirst.build(
                    nonce, secrets.token_bytes(self.settings.salt_length), self.settings.iterations
                )
                self._state = _AwaitingClientFinalWithoutKeys(
                    username=client_first.username, server_first=server_first
                )
            else:
                server_first = ServerFirst.build(nonce, credential.salt, credential.iterations)
                self._state = _AwaitingClientFinal(
                    credential=credential,
                    client_first_bare=client_first.bare,
                    server_first=server_first,
                )
        return server_first

    # -------------------- FINAL ROUND -------------------- #

    def process_client_final(self, message: Union[str, ClientFinal]) -> ServerFinal:
        with self._abort_on_error():
            state = self._expect(_AwaitingClientFinal, _AwaitingClientFinalWithoutKeys)
            if isinstance(state, _AwaitingClientFinalWithoutKeys):
                raise ServerKeyMissing(f"no credential registered for '{state.username}'")

            client_final = _as_message(ClientFinal, message)

            if client_final.channel_binding != CHANNEL_BINDING:
                raise DecodingError(f"unsupported channel binding {client_final.channel_binding!r}")

            if client_final.nonce != state.server_first.nonce:
                raise ClientNonceMismatch("client-final nonce differs from the nonce issued")

            auth_message = AuthMessage.build(state.client_first_bare, state.server_first)
            proof = client_final.proof
            if len(proof) != DIGEST_SIZE:
                raise ClientProofMismatch(f"proof is {len(proof)} bytes, expected {DIGEST_SIZE}")
            if not engine.verify_client_proof(state.credential.stored_key, auth_message, proof):
                raise ClientProofMismatch("client proof does not match stored key")

            signature = engine.server_signature(state.credential.server_key, auth_message)
            self._state = _Completed(username=state.credential.username)
        return ServerFinal.build(signature)

    # -------------------- DISPATCH -------------------- #

    def respond(self, raw: str) -> str:
        """Answer whichever client message the current state is waiting for."""
        if isinstance(self._state, (_AwaitingClientFinal, _AwaitingClientFinalWithoutKeys)):
            return self.process_client_final(raw).raw
        return self.process_client_first(raw).raw


def _as_message(cls, message):
    if isinstance(message, cls):
        return message
    return cls.from_wire(message)
