"""Cryptographic helpers: key digests, prefixes, secret generation."""

from __future__ import annotations

import hmac
import secrets
import string

from Crypto.Hash import keccak

DIGEST_SIZE = 32
PREFIX_LENGTH = 10

_SECRET_ALPHABET = string.ascii_letters + string.digits


def digest(secret: str) -> bytes:
    """Keccak-256 digest of a secret.

    Original Keccak padding, not FIPS-202 SHA3-256; stored key hashes were
    written with it.
    """
    return keccak.new(data=secret.encode("utf-8"), digest_bits=256).digest()


def derive_prefix(secret: str) -> bytes:
    """First ``PREFIX_LENGTH`` bytes of the UTF-8 encoded secret."""
    return secret.encode("utf-8")[:PREFIX_LENGTH]


def generate_secret(length: int = 32) -> str:
    """Random alphanumeric secret of ``length`` characters."""
    return "".join(secrets.choice(_SECRET_ALPHABET) for _ in range(length))


def constant_time_equal(a: bytes, b: bytes) -> bool:
    """Compare two byte strings in time independent of where they differ."""
    return hmac.compare_digest(a, b)
