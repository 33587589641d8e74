import json
import os
from pathlib import Path
from typing import Any, Optional


class SecretsManager:
    """Load secrets from a JSON file pointed to by ``SECRETS_PATH``.

    Lookups fall back to an environment variable of the same name when the
    key is absent from the file, so a bearer token for the market-data API
    can be injected either way. The file is cached on first access; tests
    replace the cache via :meth:`set_override`.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(
            path or os.getenv("SECRETS_PATH", "/var/run/secrets/app.json")
        )
        self._cache: dict[str, Any] | None = None

    def _load(self) -> dict[str, Any]:
        if self._cache is None:
            try:
                with self._path.open("r", encoding="utf-8") as fh:
                    self._cache = json.load(fh)
            except FileNotFoundError:
                self._cache = {}
        return self._cache

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        """Return secret *key* from the file, then the environment, else *default*."""

        data = self._load()
        if key in data:
            return data[key]
        return os.getenv(key, default)

    def set_override(self, data: dict[str, Any]) -> None:
        """Replace the entire secret cache (test helper)."""

        self._cache = dict(data)


# Global default manager
secrets = SecretsManager()


def get_secret(key: str, default: Optional[Any] = None) -> Any:
    """Convenience wrapper around :class:`SecretsManager`."""

    return secrets.get(key, default)
