import os
import subprocess
from dataclasses import dataclass

from .errors import GitError


@dataclass(frozen=True)
class TreeEntry:
    sha: str
    size: int
    path: str


def _git(repo_path: str, *args: str) -> bytes:
    result = subprocess.run(
        ["git", "--git-dir", repo_path, *args],
        capture_output=True,
    )
    if result.returncode != 0:
        raise GitError(f"git {args[0]} failed in {repo_path}: {result.stderr.decode(errors='replace').strip()}")
    return result.stdout


def is_bare_repository(path: str) -> bool:
    return (
        os.path.isfile(os.path.join(path, "HEAD"))
        and os.path.isdir(os.path.join(path, "objects"))
        and os.path.isdir(os.path.join(path, "refs"))
    )


def list_commits(repo_path: str) -> list[str]:
    """All commits reachable from any ref, oldest first.

    An empty repository (no refs yet) has no commits.
    """
    if not _git(repo_path, "for-each-ref", "--count=1").strip():
        return []
    out = _git(repo_path, "rev-list", "--all", "--reverse").decode()
    return [line for line in out.splitlines() if line]


def list_blobs(repo_path: str, commit: str) -> list[TreeEntry]:
    # -l outputs lines like: <mode> <type> <object> <size>\t<path>
    out = _git(repo_path, "ls-tree", "-r", "-l", "-z", commit)
    entries = []
    for record in out.split(b"\0"):
        if not record:
            continue
        meta, path = record.split(b"\t", 1)
        _mode, otype, sha, size = meta.split()
        if otype != b"blob":
            continue  # submodule commits
        entries.append(TreeEntry(sha.decode(), int(size), path.decode("utf-8", errors="replace")))
    return entries


def read_commit(repo_path: str, commit: str) -> bytes:
    return _git(repo_path, "cat-file", "commit", commit)


def read_blob(repo_path: str, blob: str, limit: int | None = None) -> bytes:
    """Read blob content, at most ``limit`` bytes when a limit is given.

    The git process is stopped once the limit is reached so large blobs are
    never read in full.
    """
    if limit is None:
        return _git(repo_path, "cat-file", "blob", blob)
    proc = subprocess.Popen(
        ["git", "--git-dir", repo_path, "cat-file", "blob", blob],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
    )
    try:
        data = proc.stdout.read(limit)
        if len(data) < limit:
            stderr = proc.stderr.read()
            if proc.wait() != 0:
                raise GitError(f"git cat-file failed in {repo_path}: {stderr.decode(errors='replace').strip()}")
    finally:
        if proc.poll() is None:
            proc.kill()
            proc.wait()
        proc.stdout.close()
        proc.stderr.close()
    return data
