import hashlib
import uuid


def resolve(repo_id: str, object_id: str) -> str:
    """Content address of an object inside a repository.

    SHA-1 over the repository id followed by the git object id, so the same
    blob stored in two repositories gets two distinct index documents.
    """
    return hashlib.sha1((repo_id + object_id).encode("utf-8")).hexdigest()


def point_id(identity: str) -> str:
    # Qdrant point ids must be a UUID or an unsigned int.
    return str(uuid.UUID(bytes=bytes.fromhex(identity)[:16]))
