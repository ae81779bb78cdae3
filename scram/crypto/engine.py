"""
RFC 5802 key chain (SHA-1):

    SaltedPassword  = Hi(password, salt, i)
    ClientKey       = HMAC(SaltedPassword, "Client Key")
    StoredKey       = H(ClientKey)
    ServerKey       = HMAC(SaltedPassword, "Server Key")
    ClientSignature = HMAC(StoredKey, AuthMessage)
    ClientProof     = ClientKey XOR ClientSignature
    ServerSignature = HMAC(ServerKey, AuthMessage)

All functions are pure: no state, no I/O, no randomness.
"""
from typing import NamedTuple

from scram.common.protocol import AuthMessage
from scram.crypto.primitives import bytes_eq, hash_, hmac, pbkdf2, xor


class DerivedKeys(NamedTuple):
    salted_password: bytes
    client_key: bytes
    stored_key: bytes
    server_key: bytes


def salted_password(password: str, salt: bytes, rounds: int) -> bytes:
    return pbkdf2(password, salt, rounds)


def client_key(salted: bytes) -> bytes:
    return hmac(salted, "Client Key")


def stored_key(client_key: bytes) -> bytes:
    return hash_(client_key)


def server_key(salted: bytes) -> bytes:
    return hmac(salted, "Server Key")


def client_signature(stored_key: bytes, auth_message: AuthMessage) -> bytes:
    return hmac(stored_key, auth_message.raw)


def client_proof(client_key: bytes, client_signature: bytes) -> bytes:
    return xor(client_key, client_signature)


def server_signature(server_key: bytes, auth_message: AuthMessage) -> bytes:
    return hmac(server_key, auth_message.raw)


def derive_keys(password: str, salt: bytes, rounds: int) -> DerivedKeys:
    """Run the password half of the chain once; PBKDF2 is the expensive step."""
    salted = salted_password(password, salt, rounds)
    ck = client_key(salted)
    return DerivedKeys(salted, ck, stored_key(ck), server_key(salted))


def recover_client_key(stored_key: bytes, auth_message: AuthMessage, proof: bytes) -> bytes:
    """ClientKey' = ClientSignature XOR ClientProof"""
    return xor(client_signature(stored_key, auth_message), proof)


def verify_client_proof(stored_key: bytes, auth_message: AuthMessage, proof: bytes) -> bool:
    """
    Server-side check H(ClientKey') == StoredKey, without ever needing the
    password or the real ClientKey.
    """
    candidate = recover_client_key(stored_key, auth_message, proof)
    return bytes_eq(hash_(candidate), stored_key)
