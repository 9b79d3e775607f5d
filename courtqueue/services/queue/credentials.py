"""Join secrets and power-guest PINs.

Stored values are ``salt:hash`` where ``hash`` is the hex SHA-256 of
``salt + "::" + secret``. Sessions created by older clients still carry a
single unsalted hash; those are accepted until the host sets a new value.
"""

import hashlib
import hmac
import secrets

LEGACY_JOIN = 'join'
LEGACY_PIN = 'pin'


def _sha256(text: str) -> str:
    return hashlib.sha256(text.encode('utf-8')).hexdigest()


def _legacy_hash(secret: str, kind: str) -> str:
    if kind == LEGACY_PIN:
        return _sha256(f'jastly::pin::{secret}')
    return _sha256(f'jastly::{secret}::club')


def _split(stored: str):
    salt, sep, digest = stored.partition(':')
    if not sep:
        return None, stored
    return salt, digest


def make_secret(secret: str) -> str:
    salt = secrets.token_hex(16)
    return f'{salt}:{_sha256(salt + "::" + secret)}'


def client_hash(secret: str, stored: str, kind: str = LEGACY_PIN) -> str:
    """Return the hash a client sends when proving knowledge of ``secret``."""
    salt, _ = _split(stored)
    if salt is None:
        return _legacy_hash(secret, kind)
    return _sha256(salt + '::' + secret)


def hash_matches(candidate: str, stored: str) -> bool:
    """Constant-time check of a client-computed hash against the stored value."""
    if not isinstance(candidate, str) or not candidate or not stored:
        return False
    _, digest = _split(stored)
    return hmac.compare_digest(candidate.encode('utf-8'), digest.encode('utf-8'))


def verify_secret(secret: str, stored: str, kind: str = LEGACY_JOIN) -> bool:
    if not stored or not isinstance(secret, str):
        return False
    return hash_matches(client_hash(secret.strip(), stored, kind), stored)
