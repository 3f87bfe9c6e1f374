'''
Key/value persistence consumed by the subscription repository.
The host normally supplies its own; in-memory and file-backed stores ship here.
'''

import asyncio
import os
from abc import ABC, abstractmethod
from pathlib import Path
from urllib.parse import quote, unquote

from filelock import FileLock, Timeout

from feedrelay.errors import StoreError


class KVStore(ABC):
    '''Host key/value store. Writes to one key are assumed to be serialized by the store.'''

    @abstractmethod
    async def get(self, key: str) -> bytes | None:
        '''Value for key, or None if absent.'''

    @abstractmethod
    async def set(self, key: str, value: bytes) -> None:
        '''Overwrite key. Raises StoreError on failure.'''

    @abstractmethod
    async def list_keys(self, page: int, page_size: int) -> list[str]:
        '''One page of keys in a stable order.'''


class MemoryKVStore(KVStore):
    def __init__(self, data: dict[str, bytes] | None = None) -> None:
        self.data: dict[str, bytes] = dict(data or {})

    async def get(self, key: str) -> bytes | None:
        return self.data.get(key)

    async def set(self, key: str, value: bytes) -> None:
        self.data[key] = bytes(value)

    async def list_keys(self, page: int, page_size: int) -> list[str]:
        keys = sorted(self.data)
        return keys[page * page_size : (page + 1) * page_size]


def _lock_timeout() -> float:
    '''Lock timeout in seconds (FEEDRELAY_LOCK_TIMEOUT env, default 30).'''
    try:
        return float(os.environ.get('FEEDRELAY_LOCK_TIMEOUT', '30'))
    except ValueError:
        return 30.0


class FileKVStore(KVStore):
    '''
    One JSON file per key under root. Writes take an exclusive file lock and
    go through a temp file plus rename, so readers never see a partial record.
    '''

    SUFFIX = '.json'

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        return self.root / (quote(key, safe='') + self.SUFFIX)

    def _read(self, key: str) -> bytes | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_bytes()

    def _write(self, key: str, value: bytes) -> None:
        path = self._path(key)
        lock = FileLock(path.with_suffix(path.suffix + '.lock'), timeout=_lock_timeout())
        try:
            with lock:
                self.root.mkdir(parents=True, exist_ok=True)
                temp = path.with_suffix(path.suffix + '.tmp')
                temp.write_bytes(value)
                temp.replace(path)
        except Timeout as e:
            raise StoreError(f'could not lock {path} within {_lock_timeout():.0f}s') from e
        except OSError as e:
            raise StoreError(f'failed to write {path}: {e}') from e

    def _keys(self) -> list[str]:
        if not self.root.exists():
            return []
        return sorted(
            unquote(p.name[: -len(self.SUFFIX)]) for p in self.root.iterdir() if p.name.endswith(self.SUFFIX)
        )

    async def get(self, key: str) -> bytes | None:
        return await asyncio.to_thread(self._read, key)

    async def set(self, key: str, value: bytes) -> None:
        await asyncio.to_thread(self._write, key, value)

    async def list_keys(self, page: int, page_size: int) -> list[str]:
        keys = await asyncio.to_thread(self._keys)
        return keys[page * page_size : (page + 1) * page_size]
