"""
Fixture Store
=============
Reads and writes fixture files under

    <root>/<public|private>/<urlPath>.<type>[.<bodyHash>].<ext>

and turns them into response envelopes. A missing fixture is never an
exception: `load_response` hands back the synthetic 504 envelope and the
dispatcher decides what to do with it.

All filesystem work runs in a worker thread so a slow disk never stalls the
event loop.
"""

import asyncio
import json
import logging
import os
import tempfile
from typing import Any, Dict, Optional, Union

from mockproxy.core.models import ArtifactType, InboundRequest, ResponseEnvelope
from mockproxy.services.transforms import TransformError, TransformRegistry, default_registry
from mockproxy.utils.fixture_key import (
    definition_path, fixture_path, has_body, is_safe_logical_path, resolve
)

logger = logging.getLogger("mockproxy")

# Response kinds selectable through the definition file's "type"
RESPONSE_KINDS = {ArtifactType.DATA.value: ArtifactType.DATA, ArtifactType.FUNC.value: ArtifactType.FUNC}


def _current_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


# Read once: os.umask() can only be queried by setting it, which is not
# safe from the worker threads that do the writes
FILE_MODE = 0o666 & ~_current_umask()


def _read_bytes(path: str) -> Optional[bytes]:
    try:
        with open(path, "rb") as f:
            return f.read()
    except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
        return None
    except OSError as e:
        # e.g. a name longer than the filesystem allows, or no read permission
        logger.warning(f"⚠️ Can not read fixture {path}: {e.strerror or e}")
        return None


def _atomic_write(target: str, content: bytes) -> None:
    """
    Write to a temp file in the target directory, then rename over the target.
    Readers see either the old file or the new one, never a partial write.
    The result gets the usual umask-based mode, not mkstemp's 0600.
    """
    directory = os.path.dirname(target)
    os.makedirs(directory, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=directory, prefix=f".{os.path.basename(target)}.")
    closed = False
    try:
        os.write(fd, content)
        os.close(fd)
        closed = True
        os.chmod(tmp, FILE_MODE)
        os.replace(tmp, target)
    except BaseException:
        if not closed:
            os.close(fd)
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


class FixtureStore:
    def __init__(self, root: str, transforms: Optional[TransformRegistry] = None):
        self.root = root
        self.transforms = transforms or default_registry

    # ── Low-level artifacts ──

    async def get(self, artifact_type: ArtifactType, logical_path: str, request: InboundRequest) -> Optional[bytes]:
        """
        Read one artifact for the request's namespace.

        A body-specific file is preferred; when it does not exist the generic
        (no-hash) file for the same path is used. Returns None when neither exists.
        """
        if not is_safe_logical_path(logical_path):
            logger.warning(f"⚠️ Refusing unsafe fixture path: {logical_path!r}")
            return None

        key = resolve(artifact_type, logical_path, request.body)
        path = fixture_path(self.root, request, key)
        content = await asyncio.to_thread(_read_bytes, path)

        if content is None and key.body_hash:
            path = fixture_path(self.root, request, key.generic())
            content = await asyncio.to_thread(_read_bytes, path)

        if content is not None:
            logger.info(f" --> [Mock] reading {artifact_type.value} file {path}")
        return content

    async def put(
        self,
        artifact_type: ArtifactType,
        logical_path: str,
        content: Union[str, bytes],
        request: InboundRequest,
    ) -> str:
        """Write one artifact (whole-file replacement). Returns the written path."""
        if not is_safe_logical_path(logical_path):
            raise ValueError(f"unsafe fixture path: {logical_path!r}")

        key = resolve(artifact_type, logical_path, request.body)
        path = fixture_path(self.root, request, key)
        data = content.encode("utf-8") if isinstance(content, str) else content
        await asyncio.to_thread(_atomic_write, path, data)
        logger.info(f" --> [Record] {artifact_type.value} file stored ({path})")
        return path

    # ── Responses ──

    async def _load_definition(self, request: InboundRequest) -> Dict[str, Any]:
        path = definition_path(self.root, request, request.logical_path)
        text = await asyncio.to_thread(_read_bytes, path)
        if text is None:
            return {}
        logger.info(f" --> [Mock] definition file found ({path})")
        try:
            definition = json.loads(text)
        except ValueError:
            logger.warning(f"⚠️ Definition file {path} is not valid JSON, using defaults")
            return {}
        return definition if isinstance(definition, dict) else {}

    async def _load_headers(self, request: InboundRequest) -> Dict[str, Any]:
        text = await self.get(ArtifactType.HEADERS, request.logical_path, request)
        if text is None:
            logger.info(" --> [Mock] default headers sent")
            return {}
        try:
            headers = json.loads(text)
        except ValueError:
            logger.info(" --> [Mock] headers file unreadable, default headers sent")
            return {}
        return headers if isinstance(headers, dict) else {}

    async def load_response(self, request: InboundRequest) -> ResponseEnvelope:
        """
        Build the mocked response for a request.

        The optional definition file picks DATA (default) or FUNC. A missing
        body artifact yields the synthetic 504 "Mock data fail" envelope;
        a missing or broken headers artifact just means default headers.
        """
        url = request.logical_path
        if not is_safe_logical_path(url):
            logger.warning(f"⚠️ Refusing unsafe fixture path: {url!r}")
            return ResponseEnvelope.mock_fail()

        definition = await self._load_definition(request)
        kind = RESPONSE_KINDS.get(definition.get("type"), ArtifactType.DATA)

        content = await self.get(kind, url, request)
        if content is None:
            logger.info(f" --> [Mock] Failed to load: {kind.value} file not found for {url}")
            return ResponseEnvelope.mock_fail()

        if kind is ArtifactType.FUNC:
            logger.info(" --> [Mock] running transform")
            try:
                body = self.transforms.render(content, request)
            except TransformError as e:
                logger.error(f"❌ [Mock] transform failed for {url}: {e}")
                body = b""
        else:
            body = content

        headers = await self._load_headers(request)
        return ResponseEnvelope(headers=headers, body=body)

    async def capture(self, request: InboundRequest, headers: Dict[str, Any], body: bytes) -> bool:
        """
        Persist a live upstream response as fixtures.

        Write failures are logged and swallowed: the response already obtained
        from the upstream must still reach the client.
        """
        url = request.logical_path
        logger.info(f" --> [Record] Storing data {url}")
        try:
            await self.put(ArtifactType.HEADERS, url, json.dumps(headers), request)
            await self.put(ArtifactType.DATA, url, body, request)
            if request.method == "POST" and has_body(request.body):
                await self.put(ArtifactType.REQUEST_BODY, url, json.dumps(request.body), request)
        except (OSError, ValueError) as e:
            logger.error(f"❌ [Record] can not store fixtures for {url}: {e}")
            return False
        return True
