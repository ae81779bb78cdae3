"""
Attribute codec for SCRAM text messages.

A message is a comma separated sequence of ``name=value`` items. Each item is
split on its first ``=``; an item with no ``=`` at all (the GS2 flag ``n``, the
empty authzid) is kept as ``(item, None)`` so that serialize(parse(s)) == s.
Lookups only ever match items that carry a value.
"""

from typing import List, Optional, Tuple

from scram.common.errors import DecodingError

Pair = Tuple[str, Optional[str]]


# -------------------- PARSE / SERIALIZE -------------------- #

def parse(raw: str) -> List[Pair]:
    """Split a raw message into ordered (name, value) pairs."""
    pairs: List[Pair] = []
    for item in raw.split(","):
        name, sep, value = item.partition("=")
        pairs.append((name, value) if sep else (name, None))
    return pairs


def serialize(pairs: List[Pair]) -> str:
    """Join pairs back with commas, in the order given."""
    return ",".join(name if value is None else f"{name}={value}" for name, value in pairs)


# -------------------- LOOKUP -------------------- #

def lookup_first(pairs: List[Pair], name: str) -> Optional[str]:
    for n, v in pairs:
        if n == name and v is not None:
            return v
    return None


def lookup_all(pairs: List[Pair], name: str) -> List[str]:
    return [v for n, v in pairs if n == name and v is not None]


def require(pairs: List[Pair], name: str) -> str:
    """lookup_first, but a missing attribute is a DecodingError."""
    value = lookup_first(pairs, name)
    if value is None:
        raise DecodingError(f"missing required attribute '{name}'")
    return value


# -------------------- SASLNAME -------------------- #

def escape_saslname(name: str) -> str:
    # '=' first, otherwise the '=' of '=2C' would be escaped again
    return name.replace("=", "=3D").replace(",", "=2C")


def unescape_saslname(value: str) -> str:
    out = []
    i = 0
    while i < len(value):
        ch = value[i]
        if ch == "=":
            code = value[i + 1:i + 3]
            if code == "2C":
                out.append(",")
            elif code == "3D":
                out.append("=")
            else:
                raise DecodingError(f"invalid saslname escape in {value!r}")
            i += 3
            continue
        out.append(ch)
        i += 1
    return "".join(out)
