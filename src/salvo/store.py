"""Session persistence.

A store keeps sessions as JSON-compatible documents, so the in-memory and the
on-disk backends behave the same: callers always get a fresh ``GameSession``
decoded from the stored document and must ``save()`` it back for changes to
stick.

``lock(session_id)`` serialises read-modify-write cycles on one session inside
this process; the JSON backend also serialises them across processes sharing
its directory. ``save()`` additionally checks the document version so a writer
holding a stale copy is refused instead of silently overwriting newer state.
"""

from __future__ import annotations

import abc
import contextlib
import json
import logging
import os
import tempfile
import threading
import time
from pathlib import Path
from typing import Any, Iterator, Optional

from .errors import StaleSessionError
from .session import GameSession

logger = logging.getLogger(__name__)

Document = dict[str, Any]


class DuplicateRoomCode(Exception):
    """Raised by ``insert`` when the room code is already taken."""


class SessionStore(abc.ABC):
    """Persistence interface consumed by the gateway."""

    def __init__(self) -> None:
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        # guards code uniqueness and version checks
        self._write_guard = threading.RLock()

    # -------------------- backend hooks --------------------
    @abc.abstractmethod
    def _read(self, session_id: str) -> Optional[Document]: ...

    @abc.abstractmethod
    def _write(self, doc: Document) -> None: ...

    @abc.abstractmethod
    def _remove(self, session_id: str) -> None: ...

    @abc.abstractmethod
    def _session_id_for(self, room_code: str) -> Optional[str]: ...

    @abc.abstractmethod
    def _claim_code(self, room_code: str, session_id: str) -> bool:
        """Reserve *room_code* for *session_id*; False if it is taken."""

    @abc.abstractmethod
    def _release_code(self, room_code: str) -> None: ...

    @abc.abstractmethod
    def _ids(self) -> list[str]: ...

    # -------------------- public API --------------------
    @contextlib.contextmanager
    def lock(self, session_id: str) -> Iterator[None]:
        with self._locks_guard:
            lk = self._locks.setdefault(session_id, threading.Lock())
        with lk:
            yield

    def find_session(self, session_id: str) -> Optional[GameSession]:
        doc = self._read(session_id)
        return GameSession.from_dict(doc) if doc is not None else None

    def find_by_code(self, room_code: str) -> Optional[GameSession]:
        session_id = self._session_id_for(room_code)
        return self.find_session(session_id) if session_id else None

    def code_exists(self, room_code: str) -> bool:
        return self._session_id_for(room_code) is not None

    def insert(self, session: GameSession) -> None:
        with self._write_guard:
            if not self._claim_code(session.room_code, session.session_id):
                raise DuplicateRoomCode(session.room_code)
            self._write(session.to_dict())
        logger.debug("inserted session %s (%s)", session.session_id, session.room_code)

    def save(self, session: GameSession) -> None:
        """Persist *session*, bumping its version.

        Raises ``StaleSessionError`` when the stored document moved on (or
        vanished) since *session* was loaded.
        """
        with self._write_guard:
            stored = self._read(session.session_id)
            if stored is None:
                raise StaleSessionError(f"Session {session.session_id} no longer exists")
            if int(stored.get("version", 0)) != session.version:
                raise StaleSessionError(
                    f"Session {session.session_id} is at version {stored.get('version')}, "
                    f"write was based on {session.version}"
                )
            session.version += 1
            self._write(session.to_dict())

    def delete(self, session_id: str) -> bool:
        with self._write_guard:
            doc = self._read(session_id)
            if doc is None:
                return False
            self._remove(session_id)
            self._release_code(doc["roomCode"])
        with self._locks_guard:
            self._locks.pop(session_id, None)
        return True

    def sessions(self) -> Iterator[GameSession]:
        for session_id in self._ids():
            session = self.find_session(session_id)
            if session is not None:
                yield session

    def __len__(self) -> int:
        return len(self._ids())


class InMemorySessionStore(SessionStore):
    """Dict-backed store for single-process deployments and tests."""

    def __init__(self) -> None:
        super().__init__()
        self._docs: dict[str, str] = {}
        self._codes: dict[str, str] = {}

    def _read(self, session_id: str) -> Optional[Document]:
        raw = self._docs.get(session_id)
        return json.loads(raw) if raw is not None else None

    def _write(self, doc: Document) -> None:
        # stored serialised so no caller can mutate a live document
        self._docs[doc["sessionId"]] = json.dumps(doc)

    def _remove(self, session_id: str) -> None:
        self._docs.pop(session_id, None)

    def _session_id_for(self, room_code: str) -> Optional[str]:
        return self._codes.get(room_code)

    def _claim_code(self, room_code: str, session_id: str) -> bool:
        if room_code in self._codes:
            return False
        self._codes[room_code] = session_id
        return True

    def _release_code(self, room_code: str) -> None:
        self._codes.pop(room_code, None)

    def _ids(self) -> list[str]:
        return list(self._docs)


class JsonFileSessionStore(SessionStore):
    """One ``<session_id>.json`` document per session under *root*.

    Room codes are reserved with exclusive-create marker files in
    ``root/codes`` so two servers sharing the directory cannot hand out the
    same code. ``lock()`` likewise takes an exclusive-create ``root/locks``
    file, so the version check in ``save()`` holds across processes too. A
    lock file older than *lock_stale* seconds is treated as left behind by a
    crashed process and broken.
    """

    def __init__(self, root: Path | str, *, lock_timeout: float = 5.0, lock_stale: float = 30.0) -> None:
        super().__init__()
        self.root = Path(root)
        self.codes_dir = self.root / "codes"
        self.locks_dir = self.root / "locks"
        self.lock_timeout = lock_timeout
        self.lock_stale = lock_stale
        self.codes_dir.mkdir(parents=True, exist_ok=True)
        self.locks_dir.mkdir(parents=True, exist_ok=True)

    @contextlib.contextmanager
    def lock(self, session_id: str) -> Iterator[None]:
        with super().lock(session_id):
            path = self._inside(self.locks_dir, f"{session_id}.lock")
            self._acquire_file_lock(path)
            try:
                yield
            finally:
                with contextlib.suppress(FileNotFoundError):
                    path.unlink()

    def _acquire_file_lock(self, path: Path) -> None:
        deadline = time.monotonic() + self.lock_timeout
        while True:
            try:
                fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
            except FileExistsError:
                try:
                    age = time.time() - path.stat().st_mtime
                except FileNotFoundError:
                    continue
                if age > self.lock_stale:
                    logger.warning("Breaking stale session lock %s (%.0fs old)", path.name, age)
                    with contextlib.suppress(FileNotFoundError):
                        path.unlink()
                    continue
                if time.monotonic() >= deadline:
                    raise TimeoutError(f"Timed out waiting for session lock {path.name}")
                time.sleep(0.01)
                continue
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(str(os.getpid()))
            return

    def _inside(self, directory: Path, name: str) -> Path:
        """*directory* / *name*, refusing names that would escape *directory*."""
        path = (directory / name).resolve()
        if path.parent != directory.resolve():
            raise ValueError(f"Invalid session store key: {name!r}")
        return path

    def _path(self, session_id: str) -> Path:
        return self._inside(self.root, f"{session_id}.json")

    def _read(self, session_id: str) -> Optional[Document]:
        try:
            return json.loads(self._path(session_id).read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None

    def _write(self, doc: Document) -> None:
        target = self._path(doc["sessionId"])
        fd, tmp = tempfile.mkstemp(dir=self.root, prefix=".tmp-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(doc, fh)
            os.replace(tmp, target)
        except BaseException:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(tmp)
            raise

    def _remove(self, session_id: str) -> None:
        with contextlib.suppress(FileNotFoundError):
            self._path(session_id).unlink()

    def _session_id_for(self, room_code: str) -> Optional[str]:
        try:
            return self._inside(self.codes_dir, room_code).read_text(encoding="utf-8").strip() or None
        except FileNotFoundError:
            return None

    def _claim_code(self, room_code: str, session_id: str) -> bool:
        try:
            with open(self._inside(self.codes_dir, room_code), "x", encoding="utf-8") as fh:
                fh.write(session_id)
        except FileExistsError:
            return False
        return True

    def _release_code(self, room_code: str) -> None:
        with contextlib.suppress(FileNotFoundError):
            self._inside(self.codes_dir, room_code).unlink()

    def _ids(self) -> list[str]:
        return [p.stem for p in self.root.glob("*.json") if not p.name.startswith(".")]


def build_store(backend: str, directory: Path | str | None = None) -> SessionStore:
    """Instantiate the backend named by ``SALVO_STORE``."""
    if backend == "memory":
        return InMemorySessionStore()
    if backend == "json":
        if directory is None:
            raise ValueError("json store needs a directory")
        return JsonFileSessionStore(directory)
    raise ValueError(f"Unknown session store backend: {backend!r}")


__all__ = [
    "SessionStore",
    "InMemorySessionStore",
    "JsonFileSessionStore",
    "DuplicateRoomCode",
    "build_store",
]
