import hashlib
import uuid

from gindex.identity import point_id, resolve

BLOB = "e69de29bb2d1d6434b8b29ae775ad8c2e48c5391"


def test_resolve_is_sha1_of_repo_and_object():
    assert resolve("42", BLOB) == hashlib.sha1(("42" + BLOB).encode()).hexdigest()


def test_resolve_is_stable():
    assert resolve("42", BLOB) == resolve("42", BLOB)
    assert len(resolve("42", BLOB)) == 40


def test_same_object_in_two_repositories_gets_two_identities():
    assert resolve("1", BLOB) != resolve("2", BLOB)


def test_point_id_is_uuid_of_identity_prefix():
    identity = resolve("42", BLOB)
    pid = point_id(identity)
    assert uuid.UUID(pid).bytes == bytes.fromhex(identity)[:16]
    assert point_id(identity) == pid
