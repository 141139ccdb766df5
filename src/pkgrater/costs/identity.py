"""Deterministic package identifiers."""

import hashlib


def package_id(name: str, version: str) -> str:
    """Derive the id of one package version.

    SHA-256 of the name immediately followed by the version, with no
    separator, read as an integer and cut to its first 16 decimal digits.
    The same (name, version) pair always yields the same id, which is used
    as the cost cache key and as the cycle-detection token.
    """
    digest = hashlib.sha256(f"{name}{version}".encode()).hexdigest()
    return str(int(digest, 16))[:16]
