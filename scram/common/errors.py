"""SCRAM failure taxonomy. Every error is terminal for the session that raised it."""


class ScramError(Exception):
    """Base class for all handshake failures."""


# -------------------- CLIENT SIDE -------------------- #

class NonceMismatch(ScramError):
    """Server's combined nonce does not begin with the client nonce."""


class ServerSignatureMismatch(ScramError):
    """Recomputed ServerSignature differs from the one the server sent.

    The server must be treated as unauthenticated and the connection dropped.
    """


# -------------------- SERVER SIDE -------------------- #

class ServerKeyMissing(ScramError):
    """No credential record / derived keys exist for this session."""


class ClientNonceMismatch(ScramError):
    """Nonce in client-final differs from the one issued in server-first."""


class ClientProofMismatch(ScramError):
    """Recovered ClientKey does not hash to StoredKey."""


# -------------------- ENCODING -------------------- #

class DecodingError(ScramError, ValueError):
    """Malformed base64, malformed attribute or missing required attribute."""


class LengthMismatch(ScramError, ValueError):
    """XOR operands of unequal length."""


# -------------------- SESSION MISUSE -------------------- #

class UnexpectedMessage(ScramError):
    """Operation called in a state that does not accept it."""
