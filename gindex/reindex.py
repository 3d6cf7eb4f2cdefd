import logging
import os
import time
from collections.abc import Callable, Iterable, Iterator
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field

from .config import Config
from .errors import (
    AuthorizationDenied,
    AuthorizationServiceUnavailable,
    BackendRejected,
    BackendUnavailable,
    GitError,
    MalformedRequest,
    SizeLimitExceeded,
    Timeout,
)
from .extract import (
    BINARY_PROBE_BYTES,
    ContentClass,
    class_from_path,
    classify,
    extract,
    size_limit,
)
from .git import list_blobs, list_commits, read_blob, read_commit
from .indexing import Indexer, build_document
from .models import (
    ExtractedContent,
    IndexableObject,
    ObjectOutcome,
    ReindexReport,
    Repository,
    RepositoryOutcome,
)
from .permissions import PermissionResolver
from .repos import find_repositories, is_repository_root

log = logging.getLogger(__name__)


class Deadline:
    def __init__(self, seconds: float, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self.seconds = seconds
        self.expires_at = clock() + seconds

    def expired(self) -> bool:
        return self.clock() >= self.expires_at

    def check(self) -> None:
        if self.expired():
            raise Timeout(f"deadline of {self.seconds:g}s reached")


@dataclass
class RepositoryPass:
    outcome: RepositoryOutcome
    indexed: int = 0
    skipped: list[ObjectOutcome] = field(default_factory=list)
    failed: list[ObjectOutcome] = field(default_factory=list)


def _outcome(obj: IndexableObject, reason: str) -> ObjectOutcome:
    return ObjectOutcome(
        repo_id=obj.repo_id,
        object_id=obj.object_id,
        kind=obj.kind,
        source_path=obj.source_path,
        reason=reason,
    )


def _too_large(size: int, limit: int) -> ExtractedContent:
    return ExtractedContent(status="skipped-too-large", reason=str(SizeLimitExceeded(size, limit)))


class Reindexer:
    """Drives enumeration, extraction and submission for one reindex pass.

    Repositories may be indexed in parallel (``workers``); the objects of a
    single repository are always processed in order on one thread. The
    deadline is cooperative: it is checked before each repository and
    between objects, never in the middle of a git read or backend call.
    """

    def __init__(self, cfg: Config, resolver: PermissionResolver, indexer: Indexer,
                 clock: Callable[[], float] = time.monotonic):
        self.cfg = cfg
        self.resolver = resolver
        self.indexer = indexer
        self.clock = clock

    def _store_path(self, subpath: str | None) -> tuple[str, str]:
        root = os.path.realpath(self.cfg.repository_store)
        target = os.path.realpath(os.path.join(root, (subpath or "").lstrip("/")))
        if target != root and not target.startswith(root + os.sep):
            raise MalformedRequest(f"path {subpath!r} is outside the repository store")
        return root, target

    def run(self, token: str | None, subpath: str | None = None) -> ReindexReport:
        root, target = self._store_path(subpath)
        deadline = Deadline(self.cfg.timeout, self.clock)
        report = ReindexReport()
        try:
            lookup = self.resolver.authorizer(root, token)
        except (AuthorizationServiceUnavailable, AuthorizationDenied) as e:
            log.error("Could not resolve permitted repositories: %s", e)
            report.status = "failed"
            report.error = str(e)
            return report

        log.info("Reindexing repositories under %s", target)
        self._index_all(find_repositories(target, lookup), deadline, report)
        self._log_summary(report)
        return report

    def index_repository(self, token: str | None, repo_path: str) -> ReindexReport:
        """Index a single repository, given relative to the repository store."""
        root, target = self._store_path(repo_path)
        if not is_repository_root(target):
            raise MalformedRequest(f"{repo_path!r} is not a repository")
        deadline = Deadline(self.cfg.timeout, self.clock)
        report = ReindexReport()
        try:
            repo = self.resolver.authorizer(root, token)(target)
        except (AuthorizationServiceUnavailable, AuthorizationDenied) as e:
            log.error("Could not authorize %s: %s", repo_path, e)
            report.status = "failed"
            report.error = str(e)
            return report
        if repo is None:
            report.status = "failed"
            report.error = f"not permitted to index {repo_path}"
            return report

        self._index_all([repo], deadline, report)
        self._log_summary(report)
        return report

    def _index_all(self, repos: Iterable[Repository], deadline: Deadline, report: ReindexReport) -> None:
        pending: set[Future] = set()
        with ThreadPoolExecutor(max_workers=self.cfg.workers) as pool:
            for repo in repos:
                while len(pending) >= self.cfg.workers:
                    done, pending = wait(pending, return_when=FIRST_COMPLETED)
                    for f in done:
                        self._merge(report, f.result())
                try:
                    deadline.check()
                except Timeout as e:
                    log.warning("Reindex %s, not starting %s", e, repo.full_name)
                    report.status = "timed_out"
                    report.error = str(e)
                    break
                pending.add(pool.submit(self._index_repository, repo, deadline))
        for f in pending:
            self._merge(report, f.result())

    def _merge(self, report: ReindexReport, result: RepositoryPass) -> None:
        report.repositories.append(result.outcome)
        report.indexed += result.indexed
        report.skipped.extend(result.skipped)
        report.failed.extend(result.failed)
        if not result.outcome.complete and result.outcome.error is None:
            report.status = "timed_out"

    def _objects(self, repo: Repository) -> Iterator[IndexableObject]:
        seen: set[str] = set()
        for commit in list_commits(repo.storage_path):
            yield IndexableObject(
                repo_id=repo.id,
                object_id=commit,
                kind="commit",
                source_path=repo.full_name,
            )
            for entry in list_blobs(repo.storage_path, commit):
                if entry.sha in seen:
                    continue
                seen.add(entry.sha)
                yield IndexableObject(
                    repo_id=repo.id,
                    object_id=entry.sha,
                    kind="blob",
                    source_path=entry.path,
                    size=entry.size,
                )

    def _index_repository(self, repo: Repository, deadline: Deadline) -> RepositoryPass:
        result = RepositoryPass(RepositoryOutcome(full_name=repo.full_name, repo_id=repo.id))
        try:
            for obj in self._objects(repo):
                deadline.check()
                self._index_object(repo, obj, result)
        except Timeout as e:
            log.warning("Reindex %s, %s is incomplete", e, repo.full_name)
            result.outcome.complete = False
        except GitError as e:
            log.warning("Aborting %s: %s", repo.full_name, e)
            result.outcome.complete = False
            result.outcome.error = str(e)
        except Exception as e:
            log.exception("Aborting %s", repo.full_name)
            result.outcome.complete = False
            result.outcome.error = f"{type(e).__name__}: {e}"
        log.info("Indexed %d objects from %s", result.indexed, repo.full_name)
        return result

    def _extract(self, repo: Repository, obj: IndexableObject) -> ExtractedContent:
        if obj.kind == "commit":
            data = read_commit(repo.storage_path, obj.object_id)
            return extract(ContentClass.PLAIN_TEXT, data, self.cfg)

        cls = class_from_path(obj.source_path)
        if cls is None:
            # without a known extension the blob can only be plain text
            if obj.size is not None and obj.size > self.cfg.text_max:
                return _too_large(obj.size, self.cfg.text_max)
            head = read_blob(repo.storage_path, obj.object_id, BINARY_PROBE_BYTES)
            cls = classify(obj.source_path, head)
        if cls is ContentClass.UNSUPPORTED:
            return extract(cls, b"", self.cfg)

        limit = size_limit(cls, self.cfg)
        if cls is ContentClass.FIXED_HEADER:
            data = read_blob(repo.storage_path, obj.object_id, limit)
            return extract(cls, data, self.cfg)
        if obj.size is not None and obj.size > limit:
            return _too_large(obj.size, limit)
        # one byte past the limit lets the extractor notice an undeclared oversize blob
        data = read_blob(repo.storage_path, obj.object_id, limit + 1)
        return extract(cls, data, self.cfg)

    def _index_object(self, repo: Repository, obj: IndexableObject, result: RepositoryPass) -> None:
        try:
            content = self._extract(repo, obj)
        except GitError as e:
            log.warning("Could not read %s %s in %s: %s", obj.kind, obj.object_id, repo.full_name, e)
            result.failed.append(_outcome(obj, str(e)))
            return
        except Exception as e:
            log.exception("Could not extract %s in %s", obj.source_path, repo.full_name)
            result.failed.append(_outcome(obj, f"{type(e).__name__}: {e}"))
            return
        if content.status == "failed":
            log.warning("Could not extract %s in %s: %s", obj.source_path, repo.full_name, content.reason)
            result.failed.append(_outcome(obj, content.reason or "extraction failed"))
            return

        try:
            self.indexer.submit(build_document(obj, content))
        except (BackendUnavailable, BackendRejected) as e:
            log.warning("Could not index %s in %s: %s", obj.source_path, repo.full_name, e)
            result.failed.append(_outcome(obj, str(e)))
            return
        except Exception as e:
            log.exception("Could not index %s in %s", obj.source_path, repo.full_name)
            result.failed.append(_outcome(obj, f"{type(e).__name__}: {e}"))
            return
        result.indexed += 1
        if content.status != "ok":
            result.skipped.append(_outcome(obj, content.reason or content.status))

    def _log_summary(self, report: ReindexReport) -> None:
        log.info(
            "Reindex %s: %d repositories, %d objects indexed, %d skipped, %d failed",
            report.status, len(report.repositories), report.indexed,
            len(report.skipped), len(report.failed),
        )
