"""Filesystem artifact store.

Writes go to a temporary file that is renamed into place, so a reader
never sees a half-written archive. Blocking file I/O runs in a thread.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

from custody.application.ports.external import ArtifactStorePort


class LocalArtifactStore(ArtifactStorePort):
    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).resolve()

    def _resolve(self, path: str) -> Path:
        target = (self._root / path).resolve()
        if self._root not in target.parents:
            raise ValueError(f"Storage path escapes the store root: {path}")
        return target

    async def put(self, path: str, data: bytes) -> str:
        target = self._resolve(path)

        def write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            tmp = target.with_suffix(target.suffix + ".tmp")
            tmp.write_bytes(data)
            os.replace(tmp, target)

        await asyncio.to_thread(write)
        return path

    async def get(self, path: str) -> bytes | None:
        target = self._resolve(path)

        def read() -> bytes | None:
            try:
                return target.read_bytes()
            except FileNotFoundError:
                return None

        return await asyncio.to_thread(read)

    async def delete(self, path: str) -> None:
        target = self._resolve(path)
        await asyncio.to_thread(lambda: target.unlink(missing_ok=True))
