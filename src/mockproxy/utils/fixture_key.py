import hashlib
import json
import os
from typing import Any, Optional

from mockproxy.core.models import ArtifactType, FixtureKey, InboundRequest, Namespace


def has_body(body: Any) -> bool:
    """
    True when a parsed body should take part in fixture naming.

    Only non-empty JSON objects, arrays and text count; numbers, booleans and
    null never produce a body-specific fixture.
    """
    if isinstance(body, (dict, list, str)):
        return len(body) > 0
    return False


def canonical_body(body: Any) -> str:
    # Key-sorted, compact: the same logical body always serializes identically
    return json.dumps(body, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def body_hash(body: Any) -> Optional[str]:
    if not has_body(body):
        return None
    return hashlib.md5(canonical_body(body).encode("utf-8")).hexdigest()


def namespace_for(request: InboundRequest) -> Namespace:
    return Namespace.PRIVATE if request.is_authorized else Namespace.PUBLIC


def is_safe_logical_path(logical_path: str) -> bool:
    """Reject paths that could escape the fixture root."""
    if "\x00" in logical_path:
        return False
    # The query string is part of the filename too, so it is checked as well
    return ".." not in logical_path.replace("\\", "/").split("/")


def resolve(artifact_type: ArtifactType, logical_path: str, body: Any = None) -> FixtureKey:
    """
    Build the FixtureKey for an artifact.

    Examples:
      resolve(DATA, "/some/path", {"a": 1})  ->  /some/path.data.<md5>.raw
      resolve(DATA, "/some/path")            ->  /some/path.data.raw
      resolve(HEADERS, "/some/path")         ->  /some/path.headers.json
    """
    return FixtureKey(artifact_type, logical_path, body_hash(body))


def fixture_path(root: str, request: InboundRequest, key: FixtureKey) -> str:
    """Full on-disk path, prefixed by the namespace of the *current* request."""
    return os.path.join(root, namespace_for(request).value, key.filename.lstrip("/"))


def definition_path(root: str, request: InboundRequest, logical_path: str) -> str:
    return os.path.join(root, namespace_for(request).value, f"{logical_path}.json".lstrip("/"))
