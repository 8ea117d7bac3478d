"""Object storage on the local filesystem.

Objects are addressed by a slash separated path such as
``recipes/<uuid>.jpg`` and handed out as download URLs that the app serves
back from ``/storage/o/<path>``.
"""

import asyncio
import logging
from pathlib import Path
from urllib.parse import quote, unquote

from misoto import images


logger = logging.getLogger(__name__)


class StorageError(Exception):
    pass


class InvalidImage(StorageError):
    def __init__(self) -> None:
        super().__init__("Invalid image")


class UploadFailed(StorageError):
    pass


class InvalidPath(StorageError):
    def __init__(self, path: str) -> None:
        super().__init__(f"Invalid storage path: {path}")


def _write(target: Path, data: bytes) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(data)


class LocalStorage:
    def __init__(self, root: Path | str, base_url: str) -> None:
        self.root = Path(root).resolve()
        self.base_url = base_url.rstrip("/")

    def resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if not path or target == self.root or not target.is_relative_to(self.root):
            raise InvalidPath(path)
        return target

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/o/{quote(path, safe='')}?alt=media"

    @staticmethod
    def path_from_url(url: str) -> str:
        """The object path of a download URL, i.e. what sits between /o/ and ?"""
        _, sep, rest = url.partition("/o/")
        path = unquote(rest.split("?", 1)[0])
        if not sep or not path:
            raise InvalidPath(url)
        return path

    async def _store(self, data: bytes, path: str) -> str:
        target = self.resolve(path)
        try:
            await asyncio.to_thread(_write, target, data)
        except OSError as e:
            raise UploadFailed(f"Failed to upload {path}: {e}") from e
        logger.info("Stored %s (%d bytes)", path, len(data))
        return self.url_for(path)

    async def upload_image(self, data: bytes, path: str) -> str:
        try:
            jpeg = await images.aprepare_for_upload(data)
        except images.InvalidImage as e:
            raise InvalidImage() from e
        return await self._store(jpeg, path)

    async def upload_video(self, data: bytes, path: str) -> str:
        return await self._store(data, path)

    async def delete_file(self, path: str) -> None:
        target = self.resolve(path)
        await asyncio.to_thread(target.unlink, missing_ok=True)
        logger.info("Deleted %s", path)

    async def delete_file_from_url(self, url: str) -> None:
        await self.delete_file(self.path_from_url(url))
