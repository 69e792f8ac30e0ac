"""File-backed key/value storage for the bearer token."""

import json
from pathlib import Path

from loguru import logger

from bmcms_notify.config import settings


class TokenStore:
    """
    Persistent local storage holding the session token.

    The file is a flat JSON object, so other keys written by the
    dashboard (refresh token, cached user) are preserved.
    """

    def __init__(self, path: Path | None = None, key: str | None = None) -> None:
        self.path = Path(path) if path is not None else settings.token_file
        self.key = key or settings.token_key

    def _read_all(self) -> dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Token storage is unreadable, ignoring", path=str(self.path), error=str(exc))
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Token storage is not valid JSON, ignoring", path=str(self.path))
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data), encoding="utf-8")

    def get(self) -> str | None:
        """Return the stored token, or None when nobody is signed in."""
        token = self._read_all().get(self.key)
        return token or None

    def set(self, token: str) -> None:
        data = self._read_all()
        data[self.key] = token
        self._write_all(data)

    def clear(self) -> None:
        data = self._read_all()
        if data.pop(self.key, None) is not None:
            self._write_all(data)
