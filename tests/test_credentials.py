import hashlib

from courtqueue.services.queue import credentials


def test_make_secret_is_salted():
    first = credentials.make_secret('letmein')
    second = credentials.make_secret('letmein')
    assert first != second
    salt, digest = first.split(':')
    assert digest == hashlib.sha256(f'{salt}::letmein'.encode()).hexdigest()


def test_verify_secret():
    stored = credentials.make_secret('letmein')
    assert credentials.verify_secret('letmein', stored)
    assert credentials.verify_secret('  letmein ', stored)
    assert not credentials.verify_secret('LETMEIN', stored)
    assert not credentials.verify_secret(None, stored)
    assert not credentials.verify_secret('letmein', None)


def test_client_hash_matches_stored_value():
    stored = credentials.make_secret('2468')
    assert credentials.hash_matches(credentials.client_hash('2468', stored), stored)
    assert not credentials.hash_matches(credentials.client_hash('1357', stored), stored)
    assert not credentials.hash_matches('', stored)


def test_legacy_join_and_pin_hashes():
    join = hashlib.sha256(b'jastly::letmein::club').hexdigest()
    pin = hashlib.sha256(b'jastly::pin::2468').hexdigest()
    assert credentials.verify_secret('letmein', join, credentials.LEGACY_JOIN)
    assert credentials.verify_secret('2468', pin, credentials.LEGACY_PIN)
    # the two legacy formats are not interchangeable
    assert not credentials.verify_secret('2468', pin, credentials.LEGACY_JOIN)
