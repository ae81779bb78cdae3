"""
Full handshake: RFC 5802 example end to end, then tampering, replayed sessions
and isolation between users.
"""

import unittest
from unittest import mock

from scram.client import ClientSession, ClientState, authenticate
from scram.common.config import ScramSettings
from scram.common.errors import (
    ClientNonceMismatch, ClientProofMismatch, DecodingError, NonceMismatch,
    ServerKeyMissing, ServerSignatureMismatch, UnexpectedMessage
)
from scram.common.protocol import ClientFinal, ServerFinal, ServerFirst
from scram.common.transport import LoopbackTransport
from scram.common.utils import b64d
from scram.crypto import engine
from scram.crypto.nonce import NonceGenerator
from scram.server import ServerSession, ServerState
from scram.storage.memory import InMemoryCredentialStore

CLIENT_NONCE = "fyko+d2lbbFgONRv9qkxdawL"
SERVER_NONCE = "3rfcNHYJY1ZVvWVs7j"
SALT = b64d("QSXCR+Q6sek8bf92")
FAST = ScramSettings(iterations=64)


class FixedNonce(NonceGenerator):
    """Always hands out the same nonce, to replay the RFC example."""

    def __init__(self, value: str):
        super().__init__()
        self.value = value

    def generate(self, length: int) -> str:
        return self.value


class TestRfc5802Example(unittest.TestCase):

    def test_known_vector(self) -> None:
        store = InMemoryCredentialStore()
        server = ServerSession(store, nonce_generator=FixedNonce(SERVER_NONCE))
        server.register("user", "pencil", SALT, 4096)
        client = ClientSession(nonce_generator=FixedNonce(CLIENT_NONCE))

        client_first = client.begin("user")
        self.assertEqual(client_first.raw, f"n,,n=user,r={CLIENT_NONCE}")
        self.assertEqual(client.state, ClientState.AWAITING_SERVER_FIRST)

        server_first = server.process_client_first(client_first.raw)
        self.assertEqual(server_first.raw,
                         f"r={CLIENT_NONCE}{SERVER_NONCE},s=QSXCR+Q6sek8bf92,i=4096")
        self.assertEqual(server.state, ServerState.AWAITING_CLIENT_FINAL)

        client_final = client.process_server_first(server_first.raw, "pencil")
        self.assertEqual(client_final.raw,
                         f"c=biws,r={CLIENT_NONCE}{SERVER_NONCE},p=v0X8v3Bz2T0CJGbJQyF0X+HI4Ts=")
        self.assertEqual(client.state, ClientState.AWAITING_SERVER_FINAL)

        server_final = server.process_client_final(client_final.raw)
        self.assertEqual(server_final.raw, "v=rmF9pqV8S7suAoZWja4dJRkFsKQ=")
        self.assertEqual(server.state, ServerState.COMPLETED)
        self.assertEqual(server.username, "user")

        self.assertTrue(client.process_server_final(server_final.raw))
        self.assertEqual(client.state, ClientState.AUTHENTICATED)


class HandshakeTestCase(unittest.TestCase):

    def setUp(self) -> None:
        self.store = InMemoryCredentialStore()
        ServerSession(self.store, FAST).register("alice", "alice123", b"alice-salt", 64)
        self.server = ServerSession(self.store, FAST)
        self.client = ClientSession()

    def first_round(self, username: str = "alice") -> ServerFirst:
        return self.server.process_client_first(self.client.begin(username).raw)


class TestLoopback(HandshakeTestCase):

    def test_authenticate(self) -> None:
        transport = LoopbackTransport(self.server)
        self.assertTrue(authenticate(transport, "alice", "alice123", self.client))
        self.assertEqual(len(transport.sent), 2)
        self.assertEqual(self.server.username, "alice")

    def test_wrong_password(self) -> None:
        with self.assertRaises(ClientProofMismatch):
            authenticate(LoopbackTransport(self.server), "alice", "wrong", self.client)
        self.assertEqual(self.server.state, ServerState.FAILED)
        self.assertEqual(self.server.failure, "ClientProofMismatch")
        self.assertEqual(self.client.state, ClientState.FAILED)
        self.assertEqual(self.client.failure, "ClientProofMismatch")

    def test_stray_message_after_success(self) -> None:
        transport = LoopbackTransport(self.server)
        authenticate(transport, "alice", "alice123", self.client)
        with self.assertRaises(UnexpectedMessage):
            self.server.respond("n,,n=alice,r=abc")
        self.assertEqual(self.server.state, ServerState.COMPLETED)
        self.assertEqual(self.server.username, "alice")


class TestClientSide(HandshakeTestCase):

    def test_altered_server_nonce(self) -> None:
        server_first = self.first_round()
        first = "A" if server_first.nonce[0] != "A" else "B"
        altered = ServerFirst.build(first + server_first.nonce[1:], server_first.salt, 64)
        with mock.patch.object(engine, "derive_keys") as derive:
            with self.assertRaises(NonceMismatch):
                self.client.process_server_first(altered.raw, "alice123")
            derive.assert_not_called()
        self.assertEqual(self.client.state, ClientState.FAILED)

    def test_server_nonce_must_extend_client_nonce(self) -> None:
        client_first = self.client.begin("alice")
        echoed = ServerFirst.build(client_first.nonce, b"salt", 64)
        with self.assertRaisesRegex(NonceMismatch, "empty"):
            self.client.process_server_first(echoed.raw, "alice123")
        self.assertEqual(self.client.state, ClientState.FAILED)

    def test_forged_server_signature(self) -> None:
        client_final = self.client.process_server_first(self.first_round().raw, "alice123")
        self.server.process_client_final(client_final.raw)
        with self.assertRaises(ServerSignatureMismatch):
            self.client.process_server_final(ServerFinal.build(bytes(20)).raw)
        self.assertEqual(self.client.state, ClientState.FAILED)

    def test_failed_session_is_terminal(self) -> None:
        client_final = self.client.process_server_first(self.first_round().raw, "alice123")
        server_final = self.server.process_client_final(client_final.raw)
        with self.assertRaises(ServerSignatureMismatch):
            self.client.process_server_final(ServerFinal.build(bytes(20)).raw)
        with self.assertRaises(UnexpectedMessage):
            self.client.process_server_final(server_final.raw)
        self.assertEqual(self.client.failure, "ServerSignatureMismatch")

    def test_authenticated_session_is_terminal(self) -> None:
        client_final = self.client.process_server_first(self.first_round().raw, "alice123")
        server_final = self.server.process_client_final(client_final.raw)
        self.assertTrue(self.client.process_server_final(server_final.raw))
        with self.assertRaises(UnexpectedMessage):
            self.client.process_server_final(server_final.raw)
        self.assertEqual(self.client.state, ClientState.AUTHENTICATED)
        self.assertIsNone(self.client.failure)

    def test_oversized_iteration_count(self) -> None:
        client_first = self.client.begin("alice")
        hostile = ServerFirst.build(client_first.nonce + "xyz", b"salt", 99999999999999999999)
        with self.assertRaises(DecodingError):
            self.client.process_server_first(hostile.raw, "alice123")
        self.assertEqual(self.client.failure, "DecodingError")

    def test_out_of_order(self) -> None:
        with self.assertRaises(UnexpectedMessage):
            self.client.process_server_final("v=rmF9pqV8S7suAoZWja4dJRkFsKQ=")
        self.assertEqual(self.client.state, ClientState.FAILED)

    def test_begin_twice(self) -> None:
        self.client.begin("alice")
        with self.assertRaises(UnexpectedMessage):
            self.client.begin("alice")

    def test_successive_sessions_use_new_nonces(self) -> None:
        self.assertNotEqual(ClientSession().begin("alice").nonce, ClientSession().begin("alice").nonce)

    def test_malformed_server_first(self) -> None:
        self.client.begin("alice")
        with self.assertRaises(DecodingError):
            self.client.process_server_first("r=abc,s=QSXCR+Q6sek8bf92", "alice123")
        self.assertEqual(self.client.failure, "DecodingError")


class TestServerSide(HandshakeTestCase):

    def test_flipped_proof(self) -> None:
        client_final = self.client.process_server_first(self.first_round().raw, "alice123")
        proof = bytearray(client_final.proof)
        proof[0] ^= 1
        tampered = ClientFinal.build(client_final.without_proof, bytes(proof))
        with self.assertRaises(ClientProofMismatch):
            self.server.process_client_final(tampered.raw)
        self.assertEqual(self.server.state, ServerState.FAILED)

    def test_short_proof(self) -> None:
        client_final = self.client.process_server_first(self.first_round().raw, "alice123")
        tampered = ClientFinal.build(client_final.without_proof, client_final.proof[:10])
        with self.assertRaises(ClientProofMismatch):
            self.server.process_client_final(tampered.raw)

    def test_client_nonce_mismatch(self) -> None:
        client_final = self.client.process_server_first(self.first_round().raw, "alice123")
        other = ClientFinal.build(f"c=biws,r={client_final.nonce}x", client_final.proof)
        with self.assertRaises(ClientNonceMismatch):
            self.server.process_client_final(other.raw)

    def test_truncated_nonce_is_mismatch(self) -> None:
        client_final = self.client.process_server_first(self.first_round().raw, "alice123")
        other = ClientFinal.build(f"c=biws,r={client_final.nonce[:-1]}", client_final.proof)
        with self.assertRaises(ClientNonceMismatch):
            self.server.process_client_final(other.raw)

    def test_channel_binding_must_be_fixed(self) -> None:
        client_final = self.client.process_server_first(self.first_round().raw, "alice123")
        other = ClientFinal.build(f"c=eSws,r={client_final.nonce}", client_final.proof)
        with self.assertRaises(DecodingError):
            self.server.process_client_final(other.raw)

    def test_unknown_user(self) -> None:
        server_first = self.first_round("mallory")
        self.assertEqual(server_first.iterations, FAST.iterations)
        self.assertEqual(len(server_first.salt), FAST.salt_length)
        client_final = self.client.process_server_first(server_first.raw, "anything")
        with self.assertRaises(ServerKeyMissing):
            self.server.process_client_final(client_final.raw)
        self.assertEqual(self.server.state, ServerState.FAILED)

    def test_client_final_before_client_first(self) -> None:
        with self.assertRaises(UnexpectedMessage):
            self.server.process_client_final("c=biws,r=abc,p=v0X8v3Bz2T0CJGbJQyF0X+HI4Ts=")

    def test_register_after_handshake_started(self) -> None:
        self.first_round()
        with self.assertRaises(UnexpectedMessage):
            self.server.register("bob", "pw", b"salt", 64)

    def test_register_keeps_no_password(self) -> None:
        credential = ServerSession(self.store, FAST).register("bob", "hunter2", b"bob-salt", 64)
        self.assertEqual(set(type(credential).model_fields),
                         {"username", "salt", "iterations", "stored_key", "server_key"})
        self.assertNotIn(b"hunter2", credential.stored_key + credential.server_key)

    def test_registered_state(self) -> None:
        server = ServerSession(self.store, FAST)
        self.assertEqual(server.state, ServerState.START)
        server.register("bob", "pw", b"salt", 64)
        self.assertEqual(server.state, ServerState.REGISTERED)


class TestIsolation(unittest.TestCase):

    def setUp(self) -> None:
        self.store = InMemoryCredentialStore()
        registrar = ServerSession(self.store, FAST)
        registrar.register("alice", "alice123", b"alice-salt", 64)
        registrar.register("bob", "bob456", b"bob-salt", 128)

    def test_interleaved_handshakes(self) -> None:
        alice_client, bob_client = ClientSession(), ClientSession()
        alice_server, bob_server = ServerSession(self.store, FAST), ServerSession(self.store, FAST)

        alice_first = alice_server.process_client_first(alice_client.begin("alice").raw)
        bob_first = bob_server.process_client_first(bob_client.begin("bob").raw)
        self.assertEqual(alice_first.salt, b"alice-salt")
        self.assertEqual(bob_first.iterations, 128)

        bob_final = bob_client.process_server_first(bob_first.raw, "bob456")
        alice_final = alice_client.process_server_first(alice_first.raw, "alice123")

        self.assertTrue(alice_client.process_server_final(alice_server.process_client_final(alice_final.raw).raw))
        self.assertTrue(bob_client.process_server_final(bob_server.process_client_final(bob_final.raw).raw))
        self.assertEqual((alice_server.username, bob_server.username), ("alice", "bob"))

    def test_keys_are_per_user(self) -> None:
        alice, bob = self.store.lookup("alice"), self.store.lookup("bob")
        self.assertNotEqual(alice.stored_key, bob.stored_key)
        self.assertNotEqual(alice.server_key, bob.server_key)

    def test_other_users_password_fails(self) -> None:
        with self.assertRaises(ClientProofMismatch):
            authenticate(LoopbackTransport(ServerSession(self.store, FAST)), "alice", "bob456")


if __name__ == "__main__":
    unittest.main()
