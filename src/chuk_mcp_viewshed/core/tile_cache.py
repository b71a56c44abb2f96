"""
Two-tier elevation tile cache.

Memory tier: striped LRU of decoded grids, bounded by entry count and bytes.
Persistent tier: one binary blob per tile in a ByteStore, written off the
calling path by a single background writer thread.

Blob layout (little-endian): [width:int32][height:int32][width*height float32, row-major]
"""

import logging
import os
import struct
import tempfile
import threading
from collections import OrderedDict
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

import numpy as np

from ..constants import (
    TILE_CACHE_MAX_BYTES,
    TILE_CACHE_MAX_ENTRIES,
    TILE_CACHE_SHARDS,
    TILE_FILE_SUFFIX,
)
from .errors import TileDecodeError
from .terrain_rgb import ElevationGrid, decode_terrain_rgb

logger = logging.getLogger(__name__)

_HEADER = struct.Struct("<ii")


@dataclass(frozen=True)
class TileKey:
    """Identifies one raster tile."""

    zoom: int
    x: int
    y: int

    @property
    def storage_key(self) -> str:
        return f"{self.zoom}_{self.x}_{self.y}"

    @classmethod
    def from_storage_key(cls, key: str) -> "TileKey":
        zoom, x, y = (int(part) for part in key.split("_"))
        return cls(zoom, x, y)


# ---------------------------------------------------------------------------
# Binary layout
# ---------------------------------------------------------------------------


def serialize_grid(grid: ElevationGrid) -> bytes:
    """Encode a grid as header + little-endian float32 samples."""
    h, w = grid.shape
    body = np.ascontiguousarray(grid, dtype="<f4").tobytes()
    return _HEADER.pack(w, h) + body


def deserialize_grid(data: bytes) -> ElevationGrid | None:
    """Decode a serialized grid; None for a short or malformed blob."""
    if len(data) < _HEADER.size:
        return None
    w, h = _HEADER.unpack_from(data, 0)
    if w <= 0 or h <= 0 or len(data) < _HEADER.size + w * h * 4:
        return None
    grid = np.frombuffer(data, dtype="<f4", count=w * h, offset=_HEADER.size)
    grid = grid.astype(np.float32, copy=False).reshape(h, w)
    grid.setflags(write=False)
    return grid


def _frozen(grid: Any) -> ElevationGrid:
    arr = np.asarray(grid)
    if arr.dtype == np.float32 and not arr.flags.writeable:
        return arr
    arr = np.array(arr, dtype=np.float32, copy=True)
    arr.setflags(write=False)
    return arr


# ---------------------------------------------------------------------------
# Persistent byte stores
# ---------------------------------------------------------------------------


class ByteStore(Protocol):
    """Key -> bytes store backing the persistent tier."""

    def get(self, key: str) -> bytes | None: ...

    def put(self, key: str, data: bytes) -> None: ...

    def exists(self, key: str) -> bool: ...

    def delete(self, key: str) -> None: ...

    def keys(self) -> list[str]: ...

    def clear(self) -> None: ...

    def total_bytes(self) -> int: ...


class FileByteStore:
    """One file per key under a root directory, replaced atomically on write."""

    def __init__(self, root: str | Path, suffix: str = TILE_FILE_SUFFIX) -> None:
        self.root = Path(root)
        self.suffix = suffix
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.root / f"{key}{self.suffix}"

    def get(self, key: str) -> bytes | None:
        try:
            return self._path(key).read_bytes()
        except FileNotFoundError:
            return None

    def put(self, key: str, data: bytes) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.root, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            os.replace(tmp, self._path(key))
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def exists(self, key: str) -> bool:
        return self._path(key).is_file()

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def keys(self) -> list[str]:
        if not self.root.is_dir():
            return []
        return sorted(p.name[: -len(self.suffix)] for p in self.root.glob(f"*{self.suffix}"))

    def clear(self) -> None:
        if self.root.is_dir():
            for path in self.root.iterdir():
                if path.is_file():
                    path.unlink(missing_ok=True)
        self.root.mkdir(parents=True, exist_ok=True)

    def total_bytes(self) -> int:
        if not self.root.is_dir():
            return 0
        return sum(p.stat().st_size for p in self.root.glob(f"*{self.suffix}"))


class MemoryByteStore:
    """Dict-backed store for tests and ephemeral sessions."""

    def __init__(self) -> None:
        self._data: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> bytes | None:
        with self._lock:
            return self._data.get(key)

    def put(self, key: str, data: bytes) -> None:
        with self._lock:
            self._data[key] = bytes(data)

    def exists(self, key: str) -> bool:
        with self._lock:
            return key in self._data

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._data)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def total_bytes(self) -> int:
        with self._lock:
            return sum(len(v) for v in self._data.values())


# ---------------------------------------------------------------------------
# Memory tier
# ---------------------------------------------------------------------------


class _LRUShard:
    """One lock-protected LRU segment."""

    def __init__(self, max_entries: int, max_bytes: int) -> None:
        self.max_entries = max_entries
        self.max_bytes = max_bytes
        self.lock = threading.Lock()
        self.items: OrderedDict[TileKey, ElevationGrid] = OrderedDict()
        self.total = 0

    def get(self, key: TileKey) -> ElevationGrid | None:
        with self.lock:
            grid = self.items.get(key)
            if grid is not None:
                self.items.move_to_end(key)
            return grid

    def put(self, key: TileKey, grid: ElevationGrid) -> None:
        size = grid.nbytes
        with self.lock:
            old = self.items.pop(key, None)
            if old is not None:
                self.total -= old.nbytes

            while self.items and (
                len(self.items) >= self.max_entries or self.total + size > self.max_bytes
            ):
                _, evicted = self.items.popitem(last=False)
                self.total -= evicted.nbytes

            self.items[key] = grid
            self.total += size

    def clear(self) -> None:
        with self.lock:
            self.items.clear()
            self.total = 0


def _split(total: int, parts: int, index: int) -> int:
    base, extra = divmod(total, parts)
    return base + (1 if index < extra else 0)


class TileCache:
    """Decoded-tile cache with a memory tier over an optional persistent store."""

    def __init__(
        self,
        store: ByteStore | None = None,
        max_entries: int = TILE_CACHE_MAX_ENTRIES,
        max_bytes: int = TILE_CACHE_MAX_BYTES,
        shards: int = TILE_CACHE_SHARDS,
    ) -> None:
        self.store = store
        shards = max(1, min(shards, max_entries))
        # Per-shard limits sum to the totals
        self._shards = [
            _LRUShard(
                max(1, _split(max_entries, shards, i)),
                max(1, _split(max_bytes, shards, i)),
            )
            for i in range(shards)
        ]

        self._writer: ThreadPoolExecutor | None = None
        self._pending: set[Future] = set()
        self._pending_lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def _shard(self, key: TileKey) -> _LRUShard:
        return self._shards[hash(key) % len(self._shards)]

    # ------------------------------------------------------------------
    # Lookup / store
    # ------------------------------------------------------------------

    def get(self, key: TileKey) -> ElevationGrid | None:
        """Return a cached grid, promoting a persistent hit into memory."""
        shard = self._shard(key)
        grid = shard.get(key)
        if grid is not None:
            self._hits += 1
            return grid

        if self.store is not None:
            data = self.store.get(key.storage_key)
            if data is not None:
                grid = deserialize_grid(data)
                if grid is None:
                    logger.warning(f"Discarding corrupt cached tile {key.storage_key}")
                    self.store.delete(key.storage_key)
                else:
                    shard.put(key, grid)
                    self._hits += 1
                    return grid

        self._misses += 1
        return None

    def put(self, key: TileKey, grid: ElevationGrid) -> Future | None:
        """Cache a grid; the persistent write completes in the background."""
        grid = _frozen(grid)
        self._shard(key).put(key, grid)
        if self.store is None:
            return None
        return self._submit_write(key, serialize_grid(grid))

    def store_raw_tile(self, key: TileKey, payload: bytes) -> ElevationGrid | None:
        """Decode a Terrain-RGB payload and cache it; None if it does not decode."""
        try:
            grid = decode_terrain_rgb(payload)
        except TileDecodeError as e:
            logger.warning(f"Tile {key.storage_key} rejected: {e}")
            return None
        self.put(key, grid)
        return grid

    def has_tile(self, key: TileKey) -> bool:
        if self._shard(key).get(key) is not None:
            return True
        return self.store is not None and self.store.exists(key.storage_key)

    def cached_tiles(self) -> list[TileKey]:
        """Keys present in either tier."""
        keys: set[TileKey] = set()
        for shard in self._shards:
            with shard.lock:
                keys.update(shard.items)
        if self.store is not None:
            for name in self.store.keys():
                try:
                    keys.add(TileKey.from_storage_key(name))
                except ValueError:
                    logger.debug(f"Ignoring foreign cache entry {name}")
        return sorted(keys, key=lambda k: (k.zoom, k.x, k.y))

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def clear(self) -> None:
        """Drop both tiers and leave an empty persistent store behind."""
        self.flush()
        for shard in self._shards:
            shard.clear()
        if self.store is not None:
            self.store.clear()
        logger.info("Tile cache cleared")

    def total_cached_bytes(self) -> int:
        """Bytes held by the persistent tier."""
        if self.store is None:
            return 0
        return int(self.store.total_bytes())

    @property
    def memory_bytes(self) -> int:
        return sum(shard.total for shard in self._shards)

    @property
    def memory_entries(self) -> int:
        return sum(len(shard.items) for shard in self._shards)

    def stats(self) -> dict:
        return {
            "memory_entries": self.memory_entries,
            "memory_bytes": self.memory_bytes,
            "persistent_bytes": self.total_cached_bytes(),
            "pending_writes": len(self._pending),
            "hits": self._hits,
            "misses": self._misses,
        }

    def flush(self, timeout: float | None = None) -> None:
        """Block until every submitted persistent write has finished."""
        with self._pending_lock:
            pending = list(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def close(self) -> None:
        self.flush()
        if self._writer is not None:
            self._writer.shutdown(wait=True)
            self._writer = None

    # ------------------------------------------------------------------
    # Background writer
    # ------------------------------------------------------------------

    def _submit_write(self, key: TileKey, blob: bytes) -> Future:
        with self._pending_lock:
            if self._writer is None:
                self._writer = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix="tile-cache-writer"
                )
            future = self._writer.submit(self._write, key.storage_key, blob)
            self._pending.add(future)
        future.add_done_callback(self._write_done)
        return future

    def _write(self, storage_key: str, blob: bytes) -> None:
        if self.store is not None:
            self.store.put(storage_key, blob)

    def _write_done(self, future: Future) -> None:
        with self._pending_lock:
            self._pending.discard(future)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error(f"Failed to persist tile: {exc}")
