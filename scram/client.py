"""Client side of one SCRAM-SHA-1 handshake, plus a small console front end."""

import getpass
import secrets
from contextlib import contextmanager
from enum import Enum
from typing import Optional, Union

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict

from scram.common.config import ScramSettings
from scram.common.errors import (
    NonceMismatch, ScramError, ServerSignatureMismatch, UnexpectedMessage
)
from scram.common.protocol import AuthMessage, ClientFinal, ClientFirst, ServerFinal, ServerFirst
from scram.common.transport import LoopbackTransport
from scram.crypto import engine
from scram.crypto.nonce import NonceGenerator
from scram.crypto.primitives import bytes_eq
from scram.server import ServerSession
from scram.storage.memory import InMemoryCredentialStore


class ClientState(str, Enum):
    START = "start"
    AWAITING_SERVER_FIRST = "awaiting_server_first"
    AWAITING_SERVER_FINAL = "awaiting_server_final"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


# -------------------- STATE VARIANTS -------------------- #

class _State(BaseModel):
    model_config = ConfigDict(frozen=True)


class _Start(_State):
    pass


class _AwaitingServerFirst(_State):
    client_first: ClientFirst


class _AwaitingServerFinal(_State):
    auth_message: AuthMessage
    server_key: bytes


class _Authenticated(_State):
    pass


class _Failed(_State):
    reason: str


_STATE_NAMES = {
    _Start: ClientState.START,
    _AwaitingServerFirst: ClientState.AWAITING_SERVER_FIRST,
    _AwaitingServerFinal: ClientState.AWAITING_SERVER_FINAL,
    _Authenticated: ClientState.AUTHENTICATED,
    _Failed: ClientState.FAILED,
}


class ClientSession:
    """Start → AwaitingServerFirst → AwaitingServerFinal → Authenticated | Failed"""

    def __init__(self, nonce_generator: Optional[NonceGenerator] = None, nonce_length: int = 24):
        self._nonces = nonce_generator or NonceGenerator()
        self.nonce_length = nonce_length
        self._state: _State = _Start()

    @property
    def state(self) -> ClientState:
        return _STATE_NAMES[type(self._state)]

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
            self.abort(type(e).__name__)
            raise

    def abort(self, reason: str) -> None:
        """Mark the session failed; a finished session keeps its outcome."""
        if not isinstance(self._state, (_Authenticated, _Failed)):
            self._state = _Failed(reason=reason)

    def _expect(self, *states):
        if not isinstance(self._state, states):
            raise UnexpectedMessage(f"client session is in state '{self.state.value}'")
        return self._state

    # -------------------- HANDSHAKE -------------------- #

    def begin(self, username: str) -> ClientFirst:
        with self._abort_on_error():
            self._expect(_Start)
            client_first = ClientFirst.build(username, self._nonces.generate(self.nonce_length))
            self._state = _AwaitingServerFirst(client_first=client_first)
        return client_first

    def process_server_first(self, message: Union[str, ServerFirst], password: str) -> ClientFinal:
        with self._abort_on_error():
            state = self._expect(_AwaitingServerFirst)
            server_first = message if isinstance(message, ServerFirst) else ServerFirst.from_wire(message)

            # before any PBKDF2 work
            client_nonce = state.client_first.nonce
            combined = server_first.nonce
            if not combined.startswith(client_nonce):
                raise NonceMismatch("server nonce does not start with the client nonce")
            if len(combined) == len(client_nonce):
                raise NonceMismatch("server nonce part is empty")

            keys = engine.derive_keys(password, server_first.salt, server_first.iterations)
            auth_message = AuthMessage.build(state.client_first.bare, server_first)
            signature = engine.client_signature(keys.stored_key, auth_message)
            proof = engine.client_proof(keys.client_key, signature)

            self._state = _AwaitingServerFinal(auth_message=auth_message, server_key=keys.server_key)
        return ClientFinal.build(auth_message.client_final_without_proof, proof)

    def process_server_final(self, message: Union[str, ServerFinal]) -> bool:
        """
        True once the server proved it holds ServerKey. A mismatch raises
        ServerSignatureMismatch; the caller must drop the connection.
        """
        with self._abort_on_error():
            state = self._expect(_AwaitingServerFinal)
            server_final = message if isinstance(message, ServerFinal) else ServerFinal.from_wire(message)

            expected = engine.server_signature(state.server_key, state.auth_message)
            if not bytes_eq(expected, server_final.signature):
                raise ServerSignatureMismatch("server signature does not match")

            self._state = _Authenticated()
        return True


def authenticate(transport, username: str, password: str,
                 session: Optional[ClientSession] = None) -> bool:
    """Run a full handshake over anything with send(str) / receive() -> str."""
    session = session or ClientSession()
    try:
        transport.send(session.begin(username).raw)
        client_final = session.process_server_first(transport.receive(), password)
        transport.send(client_final.raw)
        return session.process_server_final(transport.receive())
    except Exception as e:
        session.abort(type(e).__name__)
        raise


def main():
    load_dotenv()
    settings = ScramSettings.from_env()

    username = "alice"
    password = "alice123"

    store = InMemoryCredentialStore()
    ServerSession(store, settings).register(
        username, password, secrets.token_bytes(settings.salt_length), settings.iterations
    )
    print(f"✓ Registered '{username}' ({settings.iterations} iterations)")

    attempt = getpass.getpass(f"password for {username}> ")
    server = ServerSession(store, settings)
    session = ClientSession(nonce_length=settings.nonce_length)

    try:
        authenticate(LoopbackTransport(server), username, attempt, session)
    except ScramError as e:
        print(f"❌ Authentication failed: {type(e).__name__}: {e}")
        return 1

    print(f"✓ Authenticated '{server.username}', server verified")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
