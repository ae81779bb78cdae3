"""
Nonce generation: printable ASCII without ',' drawn with the secrets module.
"""
import secrets

# RFC 5802 "printable": %x21-2B / %x2D-7E
PRINTABLE_EXCLUDING_COMMA = "".join(chr(c) for c in range(0x21, 0x7F) if chr(c) != ",")


class NonceGenerator:
    """Each call to generate() is independent; nothing is cached between calls."""

    def __init__(self, charset: str = PRINTABLE_EXCLUDING_COMMA):
        if not charset:
            raise ValueError("nonce character set is empty")
        if "," in charset:
            raise ValueError("nonce character set must not contain ','")
        self.charset = charset

    def generate(self, length: int) -> str:
        if length < 1:
            raise ValueError(f"nonce length must be positive, got {length}")
        return "".join(secrets.choice(self.charset) for _ in range(length))
