"""
Response Transforms
===================
FUNC fixtures describe a response that is computed from the request. On disk
they are JSON descriptors, never code:

    {"transform": "template", "options": {"template": "hello $name"}}

The named transform is looked up in a registry. Third-party packages can add
transforms through the `mockproxy.transforms` entry-point group; each entry
point must resolve to a callable with the signature below.

A transform only ever sees a frozen `TransformRequest` plus the descriptor's
options, and returns str, bytes, or a JSON-serializable dict/list.
"""

import json
import logging
import string
from dataclasses import dataclass, field
from importlib.metadata import entry_points
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional, Union

from mockproxy.core.models import InboundRequest

logger = logging.getLogger("mockproxy")

ENTRY_POINT_GROUP = "mockproxy.transforms"

TransformResult = Union[str, bytes, dict, list]


class TransformError(Exception):
    """Raised when a FUNC descriptor cannot be turned into a body."""


@dataclass(frozen=True)
class TransformRequest:
    method: str
    path: str
    query: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Any = None

    @classmethod
    def from_request(cls, request: InboundRequest) -> "TransformRequest":
        return cls(
            method=request.method,
            path=request.path,
            query=request.query,
            headers=MappingProxyType(dict(request.headers)),
            body=request.body,
        )


Transform = Callable[[TransformRequest, Mapping[str, Any]], TransformResult]


class TransformRegistry:
    def __init__(self):
        self._transforms: Dict[str, Transform] = {}

    def register(self, name: str) -> Callable[[Transform], Transform]:
        def decorator(fn: Transform) -> Transform:
            self._transforms[name] = fn
            return fn
        return decorator

    def get(self, name: str) -> Optional[Transform]:
        return self._transforms.get(name)

    def names(self):
        return sorted(self._transforms)

    def load_entry_points(self, group: str = ENTRY_POINT_GROUP) -> int:
        """Register every transform advertised by installed packages."""
        loaded = 0
        for ep in entry_points(group=group):
            try:
                self._transforms[ep.name] = ep.load()
                loaded += 1
            except Exception as e:
                logger.error(f"❌ Could not load transform plugin '{ep.name}': {e}")
        return loaded

    def render(self, descriptor_text: Union[str, bytes], request: InboundRequest) -> bytes:
        try:
            descriptor = json.loads(descriptor_text)
        except ValueError as e:
            raise TransformError(f"descriptor is not valid JSON ({e})") from e
        if not isinstance(descriptor, dict) or not descriptor.get("transform"):
            raise TransformError("descriptor must be an object with a 'transform' name")

        name = descriptor["transform"]
        fn = self.get(name)
        if fn is None:
            raise TransformError(f"unknown transform '{name}'")

        raw_options = descriptor.get("options") or {}
        if not isinstance(raw_options, dict):
            raise TransformError("'options' must be an object")
        options = MappingProxyType(dict(raw_options))
        try:
            result = fn(TransformRequest.from_request(request), options)
        except Exception as e:
            raise TransformError(f"transform '{name}' failed ({e})") from e
        return to_bytes(result)


def to_bytes(result: TransformResult) -> bytes:
    if result is None:
        return b""
    if isinstance(result, bytes):
        return result
    if isinstance(result, str):
        return result.encode("utf-8")
    return json.dumps(result).encode("utf-8")


# ── Built-in Transforms ──

default_registry = TransformRegistry()


@default_registry.register("static")
def static_transform(request: TransformRequest, options: Mapping[str, Any]) -> TransformResult:
    return options.get("body", "")


@default_registry.register("echo")
def echo_transform(request: TransformRequest, options: Mapping[str, Any]) -> TransformResult:
    return request.body if request.body is not None else ""


@default_registry.register("template")
def template_transform(request: TransformRequest, options: Mapping[str, Any]) -> TransformResult:
    """
    `string.Template` substitution. Available names: method, path, query, and
    every top-level key of a JSON object body. Unknown names are left as-is.
    """
    values = {"method": request.method, "path": request.path, "query": request.query}
    if isinstance(request.body, dict):
        values.update({str(k): v for k, v in request.body.items()})
    return string.Template(str(options.get("template", ""))).safe_substitute(values)
