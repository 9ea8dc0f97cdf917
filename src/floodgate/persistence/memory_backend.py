"""In-memory backends for local runs and unit tests."""

from __future__ import annotations

from floodgate.core.exceptions import BlobNotFoundError


class MemoryBlobStore:
    """Dict-backed IBlobStore. Lists keys in lexicographic order like S3."""

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}

    def read(self, key: str) -> bytes:
        try:
            return self._blobs[key]
        except KeyError:
            raise BlobNotFoundError(key) from None

    def write(self, key: str, data: bytes | str, content_type: str = "application/json") -> str:
        self._blobs[key] = data.encode("utf-8") if isinstance(data, str) else data
        return key

    def list(self, prefix: str) -> list[str]:
        return sorted(k for k in self._blobs if k.startswith(prefix))

    def delete(self, key: str) -> None:
        if key.endswith("/"):
            for k in self.list(key):
                del self._blobs[k]
        else:
            self._blobs.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._blobs)


class MemoryCacheBackend:
    """Dict-backed ICacheBackend. TTLs are accepted and ignored."""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._store.get(key)

    def setex(self, key: str, ttl: int, value: str) -> None:
        self._store[key] = value

    def delete(self, key: str) -> None:
        self._store.pop(key, None)


class MemoryDocumentStore:
    """IDocumentStore over two dicts: the production tree and the floodgate tree.

    Paths listed in ``locked`` reject copies and uploads with ``locked=True``.
    """

    FG_URL_PREFIX = "fg://"

    def __init__(self, files: dict[str, bytes] | None = None,
                 fg_files: dict[str, bytes] | None = None,
                 locked: set[str] | None = None) -> None:
        self.files: dict[str, bytes] = dict(files or {})
        self.fg_files: dict[str, bytes] = dict(fg_files or {})
        self.locked: set[str] = set(locked or ())
        self.delete_folder_result = True

    def _tree(self, is_floodgate: bool) -> dict[str, bytes]:
        return self.fg_files if is_floodgate else self.files

    async def list_children(self, folder: str) -> list[dict]:
        prefix = folder.rstrip("/") + "/"
        children: dict[str, dict] = {}
        for path in sorted(self.fg_files):
            if not path.startswith(prefix):
                continue
            name, sep, _ = path[len(prefix):].partition("/")
            child = prefix + name
            if sep:
                children.setdefault(child, {"path": child, "folder": True})
            else:
                children[child] = {
                    "path": child,
                    "folder": False,
                    "downloadUrl": f"{self.FG_URL_PREFIX}{child}",
                    "mimeType": "application/octet-stream",
                }
        return list(children.values())

    async def copy_file(self, src_path: str, dest_folder: str, *, is_floodgate: bool = False) -> dict:
        if src_path in self.locked:
            return {"success": False, "locked": True}
        content = self.files.get(src_path)
        if content is None:
            return {"success": False, "locked": False}
        name = src_path.rsplit("/", 1)[-1]
        self._tree(is_floodgate)[f"{dest_folder}/{name}"] = content
        return {"success": True, "locked": False}

    async def download(self, path_or_url: str, *, is_floodgate: bool = False) -> bytes | None:
        if path_or_url.startswith(self.FG_URL_PREFIX):
            return self.fg_files.get(path_or_url[len(self.FG_URL_PREFIX):])
        return self._tree(is_floodgate).get(path_or_url)

    async def upload(self, path: str, content: bytes, *, mime_type: str | None = None,
                     is_floodgate: bool = False) -> dict:
        tree = self._tree(is_floodgate)
        if path in self.locked and tree is self.files:
            return {"success": False, "locked": True}
        tree[path] = content
        return {"success": True, "locked": False}

    async def delete_folder(self, path: str, *, is_floodgate: bool = True) -> bool:
        if not self.delete_folder_result:
            return False
        tree = self._tree(is_floodgate)
        prefix = path.rstrip("/") + "/"
        for key in [k for k in tree if k.startswith(prefix)]:
            del tree[key]
        return True


class MemoryPreviewPublisher:
    """IPreviewPublisher recording every bulk call. Paths in ``failing`` fail."""

    def __init__(self, failing: set[str] | None = None, enabled: bool = True) -> None:
        self.failing: set[str] = set(failing or ())
        self.enabled = enabled
        self.calls: list[tuple[str, list[str], bool]] = []

    def can_bulk_preview_publish(self, is_floodgate: bool = False) -> bool:
        return self.enabled

    async def bulk_preview_publish(self, paths: list[str], operation: str, *,
                                   is_floodgate: bool = False) -> list[dict]:
        self.calls.append((operation, list(paths), is_floodgate))
        return [{"path": p, "success": p not in self.failing} for p in paths]
