import logging
import os
from collections.abc import Iterator

from .errors import GindexError
from .git import is_bare_repository
from .models import Repository
from .permissions import Lookup

log = logging.getLogger(__name__)


def is_repository_root(path: str) -> bool:
    return is_bare_repository(path)


def find_repositories(storage_root: str, lookup: Lookup) -> Iterator[Repository]:
    """Yield the repositories under ``storage_root`` that ``lookup`` accepts.

    Depth-first; a repository root is never descended into. Repositories the
    caller may not read, or whose access check fails, are left out.
    """
    for dirpath, dirnames, _ in os.walk(storage_root):
        if not is_repository_root(dirpath):
            dirnames.sort()
            continue
        dirnames[:] = []
        try:
            repo = lookup(dirpath)
        except GindexError as e:
            log.debug("Failed to access repo %s: %s", dirpath, e)
            continue
        if repo is not None:
            yield repo
