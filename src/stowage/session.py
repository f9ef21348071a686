"""Resumable session records.

A session persists the state of one multi-URL operation: the URLs in scope,
which of them completed, and what command produced them. Each completed URL
is written to disk before the driver moves on, so an interrupted run loses at
most the URLs that were in flight.

Session files live in one directory, named by their 8-letter session id.
Only records whose ``version`` equals :data:`SESSION_VERSION` are loadable;
there is no migration between versions.
"""

from __future__ import annotations

import json
import logging
import os
import re
import secrets
import string
import threading
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr
from pydantic import ValidationError as PydanticValidationError

from stowage.errors import (
    InvalidArgument,
    SessionCorrupt,
    SessionDirNotFound,
    SessionNotFound,
    SessionVersionMismatch,
)

logger = logging.getLogger(__name__)

SESSION_VERSION = "1.0.0"

_SESSION_ID_LENGTH = 8
_SESSION_ID_RE = re.compile(r"^[a-zA-Z]{8}$")


def is_session_id(name: str) -> bool:
    return bool(_SESSION_ID_RE.match(name))


def new_session_id() -> str:
    """Return 8 random ASCII letters."""
    return "".join(secrets.choice(string.ascii_letters) for _ in range(_SESSION_ID_LENGTH))


class Session(BaseModel):
    """Persisted state of one resumable operation.

    Field aliases give the on-disk JSON names. Every mutation holds the
    session's own lock for the read-modify-persist sequence only.
    """

    model_config = ConfigDict(populate_by_name=True)

    version: str = SESSION_VERSION
    started: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    command_type: str = Field(alias="command-type")
    session_id: str = Field(alias="session-id")
    urls: list[str] = Field(alias="args")
    files: dict[str, bool] = Field(default_factory=dict)
    target: str = ""
    sources: list[str] = Field(default_factory=list)

    _path: Path | None = PrivateAttr(default=None)
    _lock: threading.Lock = PrivateAttr(default_factory=threading.Lock)

    def __str__(self) -> str:
        started = self.started.astimezone().strftime("%Y-%m-%d %H:%M:%S %Z")
        args = " ".join(self.sources or self.urls)
        if self.target:
            args = f"{args} {self.target}"
        return f"[{started}] {self.session_id} [{self.command_type} {args}]"

    @property
    def path(self) -> Path:
        if self._path is None:
            raise SessionNotFound(self.session_id)
        return self._path

    def pending(self) -> list[str]:
        """URLs not yet completed, in their recorded order."""
        with self._lock:
            return [url for url in self.urls if not self.files.get(url)]

    def is_complete(self) -> bool:
        with self._lock:
            return all(self.files.get(url) for url in self.urls)

    def mark_done(self, url: str) -> None:
        """Record ``url`` as completed and persist the record.

        Raises:
            InvalidArgument: If ``url`` is not part of this session.
        """
        with self._lock:
            if url not in self.urls:
                raise InvalidArgument(f"'{url}' is not part of session '{self.session_id}'.")
            self.files[url] = True
            self._save()
        logger.debug("Marked %s done", url, extra={"session_id": self.session_id, "url": url})

    def save(self) -> None:
        with self._lock:
            self._save()

    def delete(self) -> None:
        """Remove the record from disk."""
        with self._lock:
            self.path.unlink(missing_ok=True)
        logger.info("Removed session %s", self.session_id, extra={"session_id": self.session_id})

    def _save(self) -> None:
        """Atomically rewrite the session file. Caller holds the lock."""
        path = self.path
        temp_path = path.with_suffix(".tmp")
        with open(temp_path, "w") as f:
            f.write(self.model_dump_json(by_alias=True, indent=2))
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_path, path)


class SessionStore:
    """The directory holding session files.

    Attributes:
        directory: Where session files are stored.
    """

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def _session_path(self, session_id: str) -> Path:
        return self.directory / session_id

    def _reserve_id(self) -> tuple[str, Path]:
        """Allocate an unused session id by creating its file exclusively."""
        while True:
            session_id = new_session_id()
            path = self._session_path(session_id)
            try:
                fd = os.open(str(path), os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
            except FileExistsError:
                continue
            os.close(fd)
            return session_id, path

    def new_session(
        self,
        command_type: str,
        urls: list[str],
        target: str = "",
        sources: list[str] | None = None,
    ) -> Session:
        """Create and persist a session covering ``urls``.

        Raises:
            InvalidArgument: If ``urls`` contains duplicates.
        """
        if len(set(urls)) != len(urls):
            raise InvalidArgument("Session URLs must be unique.")
        self.directory.mkdir(parents=True, exist_ok=True)
        session_id, path = self._reserve_id()
        session = Session(
            command_type=command_type,
            session_id=session_id,
            urls=list(urls),
            target=target,
            sources=list(sources or []),
        )
        session._path = path
        session.save()
        logger.info(
            "Created session %s for %d URLs",
            session_id,
            len(urls),
            extra={"session_id": session_id, "command": command_type},
        )
        return session

    def load(self, session_id: str) -> Session:
        """Re-read a session record from disk.

        Raises:
            SessionDirNotFound: If the session directory does not exist.
            SessionNotFound: If there is no file for ``session_id``.
            SessionVersionMismatch: If the record's version is unsupported.
            SessionCorrupt: If the file is not a valid session record.
        """
        if not self.directory.is_dir():
            raise SessionDirNotFound(str(self.directory))
        path = self._session_path(session_id)
        if not is_session_id(session_id) or not path.is_file():
            raise SessionNotFound(session_id)

        try:
            with open(path, "r") as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise SessionCorrupt(session_id, str(exc)) from exc
        if not isinstance(raw, dict):
            raise SessionCorrupt(session_id, "not a JSON object")

        version = raw.get("version", "")
        if version != SESSION_VERSION:
            raise SessionVersionMismatch(session_id, str(version), SESSION_VERSION)

        try:
            session = Session.model_validate(raw)
        except PydanticValidationError as exc:
            raise SessionCorrupt(session_id, str(exc)) from exc
        if session.session_id != session_id:
            raise SessionCorrupt(session_id, f"file holds session '{session.session_id}'")
        if not set(session.files) <= set(session.urls):
            raise SessionCorrupt(session_id, "completed files outside the URL list")

        session._path = path
        return session

    def _candidate_ids(self) -> list[str]:
        if not self.directory.is_dir():
            return []
        return sorted(p.name for p in self.directory.iterdir() if is_session_id(p.name))

    def sessions(self) -> list[Session]:
        """Load every resumable session, oldest first.

        Records of another version, or unreadable ones, are skipped.
        """
        found = []
        for session_id in self._candidate_ids():
            try:
                found.append(self.load(session_id))
            except (SessionVersionMismatch, SessionCorrupt) as exc:
                logger.warning(
                    "Skipping session %s: %s",
                    session_id,
                    exc.message,
                    extra={"session_id": session_id, "error": exc},
                )
        return sorted(found, key=lambda s: s.started)

    def session_ids(self) -> list[str]:
        return [s.session_id for s in self.sessions()]

    def clear(self, session_id: str) -> None:
        """Delete one session file, whatever its version.

        Raises:
            SessionNotFound: If there is no file for ``session_id``.
        """
        path = self._session_path(session_id)
        if not is_session_id(session_id) or not path.is_file():
            raise SessionNotFound(session_id)
        path.unlink()
        logger.info("Cleared session %s", session_id, extra={"session_id": session_id})

    def clear_all(self) -> int:
        """Delete every session file; returns how many were removed."""
        ids = self._candidate_ids()
        for session_id in ids:
            self._session_path(session_id).unlink(missing_ok=True)
        return len(ids)
