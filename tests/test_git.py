import pytest

from conftest import git
from gindex.errors import GitError
from gindex.git import is_bare_repository, list_blobs, list_commits, read_blob, read_commit


@pytest.fixture
def repo(make_repo):
    return str(make_repo("alice/data", {"a.txt": b"0123456789", "dir/b.txt": b"bee\n"}))


def test_bare_repository(repo, tmp_path):
    assert is_bare_repository(repo)
    assert not is_bare_repository(str(tmp_path))


def test_list_commits_and_blobs(repo):
    (commit,) = list_commits(repo)
    entries = list_blobs(repo, commit)
    assert [(e.path, e.size) for e in entries] == [("a.txt", 10), ("dir/b.txt", 4)]
    assert b"Add files" in read_commit(repo, commit)


def test_read_blob_with_limit(repo):
    (commit,) = list_commits(repo)
    blob = list_blobs(repo, commit)[0].sha
    assert read_blob(repo, blob) == b"0123456789"
    assert read_blob(repo, blob, 4) == b"0123"
    assert read_blob(repo, blob, 100) == b"0123456789"


def test_missing_object(repo):
    with pytest.raises(GitError):
        read_blob(repo, "0" * 40, 10)


def test_empty_repository_has_no_commits(tmp_path):
    git(tmp_path, "init", "--bare", "empty.git")
    assert list_commits(str(tmp_path / "empty.git")) == []
