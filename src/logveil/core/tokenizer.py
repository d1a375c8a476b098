"""
Pseudonymous client tokens.

A token is the first 8 bytes (16 hex characters) of
SHA-256(salt + source address + user agent).
"""

import hashlib

from .salt import Salt

TOKEN_LENGTH = 16


def tokenize(salt: Salt, source_addr: str, user_agent: str) -> str:
    """
    Derive the token for one client on the salt's day.

    Args:
        salt: Salt for the current day
        source_addr: Client address as it appeared in the log
        user_agent: Client user agent string

    Returns:
        16-character lowercase hexadecimal token
    """
    material = f"{salt.value}{source_addr}{user_agent}".encode("utf-8", "surrogateescape")
    return hashlib.sha256(material).hexdigest()[:TOKEN_LENGTH]
