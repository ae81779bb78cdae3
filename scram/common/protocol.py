"""Pydantic models: client_first, server_first, auth_message, client_final, server_final."""

from typing import ClassVar, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from scram.common import codec
from scram.common.errors import DecodingError
from scram.common.utils import b64d, b64e

# Channel binding unsupported: fixed header, base64 form "biws"
GS2_HEADER = "n,,"
CHANNEL_BINDING = b64e(GS2_HEADER.encode("ascii"))

# PBKDF2 iteration counts are 32-bit unsigned
MAX_ITERATIONS = 2 ** 32 - 1


class ScramMessage(BaseModel):
    """
    A SCRAM message is its raw text. Every typed field is a view that looks up
    the first matching attribute in `raw`; nothing else is stored.
    """

    model_config = ConfigDict(frozen=True)

    required: ClassVar[Tuple[str, ...]] = ()

    type: str
    raw: str

    @classmethod
    def from_wire(cls, raw: str):
        """Wrap a received string, checking the attributes this kind needs."""
        msg = cls(raw=raw)
        msg._check()
        return msg

    def _check(self) -> None:
        for name in self.required:
            codec.require(self.pairs, name)

    @property
    def pairs(self) -> List[codec.Pair]:
        return codec.parse(self.raw)

    def attribute(self, name: str) -> str:
        return codec.require(self.pairs, name)

    def __str__(self) -> str:
        return self.raw


# -------------------- FIRST ROUND -------------------- #

class ClientFirst(ScramMessage):
    """gs2-header n=<saslname>,r=<c-nonce>"""

    type: Literal["client_first"] = "client_first"
    required: ClassVar[Tuple[str, ...]] = ("n", "r")

    @classmethod
    def build(cls, username: str, nonce: str) -> "ClientFirst":
        bare = codec.serialize([("n", codec.escape_saslname(username)), ("r", nonce)])
        return cls(raw=GS2_HEADER + bare)

    def _split(self) -> List[str]:
        parts = self.raw.split(",", 2)
        if len(parts) != 3:
            raise DecodingError(f"client-first message has no GS2 header: {self.raw!r}")
        return parts

    def _check(self) -> None:
        if self.gs2_header != GS2_HEADER:
            raise DecodingError(f"unsupported GS2 header {self.gs2_header!r}")
        super()._check()
        self.username  # validates saslname escaping

    @property
    def gs2_header(self) -> str:
        flag, authzid, _ = self._split()
        return f"{flag},{authzid},"

    @property
    def bare(self) -> str:
        """client-first-message-bare, kept for AuthMessage."""
        return self._split()[2]

    @property
    def username(self) -> str:
        return codec.unescape_saslname(self.attribute("n"))

    @property
    def nonce(self) -> str:
        return self.attribute("r")


class ServerFirst(ScramMessage):
    """r=<c-nonce><s-nonce>,s=<salt base64>,i=<iterations>"""

    type: Literal["server_first"] = "server_first"
    required: ClassVar[Tuple[str, ...]] = ("r", "s", "i")

    @classmethod
    def build(cls, nonce: str, salt: bytes, iterations: int) -> "ServerFirst":
        return cls(raw=codec.serialize([("r", nonce), ("s", b64e(salt)), ("i", str(iterations))]))

    def _check(self) -> None:
        super()._check()
        self.salt
        self.iterations

    @property
    def nonce(self) -> str:
        return self.attribute("r")

    @property
    def salt(self) -> bytes:
        return b64d(self.attribute("s"))

    @property
    def iterations(self) -> int:
        value = self.attribute("i")
        if not (value.isascii() and value.isdigit()) or not 1 <= int(value) <= MAX_ITERATIONS:
            raise DecodingError(f"invalid iteration count {value!r}")
        return int(value)


# -------------------- AUTH MESSAGE (never sent) -------------------- #

class AuthMessage(ScramMessage):
    """client-first-bare,server-first,client-final-without-proof"""

    type: Literal["auth_message"] = "auth_message"
    required: ClassVar[Tuple[str, ...]] = ("c", "r")

    @classmethod
    def build(cls, client_first_bare: str, server_first: ServerFirst) -> "AuthMessage":
        without_proof = codec.serialize([("c", CHANNEL_BINDING), ("r", server_first.nonce)])
        return cls(raw=f"{client_first_bare},{server_first.raw},{without_proof}")

    @property
    def channel_binding(self) -> str:
        return self.attribute("c")

    @property
    def nonce(self) -> str:
        """Combined nonce; the last 'r' since the client nonce appears first."""
        values = codec.lookup_all(self.pairs, "r")
        if not values:
            raise DecodingError("missing required attribute 'r'")
        return values[-1]

    @property
    def client_final_without_proof(self) -> str:
        return codec.serialize([("c", self.channel_binding), ("r", self.nonce)])


# -------------------- FINAL ROUND -------------------- #

class ClientFinal(ScramMessage):
    """c=<channel-binding>,r=<combined nonce>,p=<proof base64>"""

    type: Literal["client_final"] = "client_final"
    required: ClassVar[Tuple[str, ...]] = ("c", "r", "p")

    @classmethod
    def build(cls, without_proof: str, proof: bytes) -> "ClientFinal":
        return cls(raw=f"{without_proof},p={b64e(proof)}")

    def _check(self) -> None:
        super()._check()
        self.proof

    @property
    def channel_binding(self) -> str:
        return self.attribute("c")

    @property
    def nonce(self) -> str:
        return self.attribute("r")

    @property
    def proof(self) -> bytes:
        return b64d(self.attribute("p"))

    @property
    def without_proof(self) -> str:
        pairs = self.pairs
        for index, (name, value) in enumerate(pairs):
            if name == "p" and value is not None:
                return codec.serialize(pairs[:index])
        return self.raw


class ServerFinal(ScramMessage):
    """v=<server signature base64>, or e=<server error>"""

    type: Literal["server_final"] = "server_final"
    required: ClassVar[Tuple[str, ...]] = ("v",)

    @classmethod
    def build(cls, signature: bytes) -> "ServerFinal":
        return cls(raw=f"v={b64e(signature)}")

    def _check(self) -> None:
        error = self.error
        if error is not None and codec.lookup_first(self.pairs, "v") is None:
            raise DecodingError(f"server reported error {error!r}")
        super()._check()
        self.signature

    @property
    def signature(self) -> bytes:
        return b64d(self.attribute("v"))

    @property
    def error(self) -> Optional[str]:
        return codec.lookup_first(self.pairs, "e")
