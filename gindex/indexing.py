import logging

from .backend import SearchBackend
from .identity import resolve
from .models import ExtractedContent, IndexableObject, IndexDocument

log = logging.getLogger(__name__)

SUGGEST_CHARS = 200


def build_document(obj: IndexableObject, content: ExtractedContent) -> IndexDocument:
    if obj.kind == "commit":
        # subject line of the commit message
        message = content.text.split("\n\n", 1)[1] if "\n\n" in content.text else ""
        suggest = message.strip().split("\n", 1)[0]
    else:
        suggest = obj.source_path
    return IndexDocument(
        identity=resolve(obj.repo_id, obj.object_id),
        repo_id=obj.repo_id,
        kind=obj.kind,
        text=content.text,
        source_path=obj.source_path,
        suggest=suggest[:SUGGEST_CHARS],
    )


class Indexer:
    """Writes index documents; a document with a known identity replaces the old one."""

    def __init__(self, backend: SearchBackend):
        self.backend = backend

    def submit(self, doc: IndexDocument) -> None:
        # No retry here: BackendUnavailable / BackendRejected go to the caller.
        self.backend.put(doc)
        log.debug("Indexed %s %s (%s)", doc.kind, doc.identity, doc.source_path)
