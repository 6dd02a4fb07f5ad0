from linksecure.services.passwords import hash_password, verify_password


def test_hash_round_trip():
    stored = hash_password("hunter2")
    assert verify_password("hunter2", stored)


def test_wrong_password_is_rejected():
    stored = hash_password("hunter2")
    assert not verify_password("hunter3", stored)
    assert not verify_password("", stored)


def test_hash_carries_its_own_salt():
    first = hash_password("same")
    second = hash_password("same")
    assert first != second
    salt, digest = first.split(":")
    assert len(salt) == 32
    assert len(digest) == 128


def test_malformed_hashes_never_verify():
    assert not verify_password("x", "")
    assert not verify_password("x", "no-separator")
    assert not verify_password("x", ":")
