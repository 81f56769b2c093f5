"""Object key rendering for rotated log segments."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

APP_TOKEN = "{app}"
GZIP_SUFFIX = ".gz"


def _render(template: str, app_id: str, when: datetime) -> str:
    # app ids are literal text, so keep strftime away from any '%' they contain
    return when.strftime(template.replace(APP_TOKEN, app_id.replace("%", "%%")))


def normalize_folder(folder: str) -> str:
    folder = folder.strip().lstrip("/")
    if folder and not folder.endswith("/"):
        folder += "/"
    return folder


class ObjectKeyNamer:
    """
    Turns the name template into object keys.

    Keys look like ``<folder><strftime(template)>[.N][.gz]``. ``{app}`` in the
    folder or the template is replaced by the application identifier. When
    two consecutive segments render to the same name (e.g. two size-based
    rotations within one minute) the later ones get ``.1``, ``.2``, ... so
    they never overwrite each other.
    """

    def __init__(self, template: str, folder: str, app_id: str, compress: bool) -> None:
        self.template = template
        self.folder = folder
        self.app_id = app_id
        self.compress = compress
        self._last_base: Optional[str] = None
        self._repeat = 0

    def render(self, when: Optional[datetime] = None) -> str:
        """Render the key for ``when`` without the collision counter."""
        when = when or datetime.now(timezone.utc)
        folder = normalize_folder(_render(self.folder, self.app_id, when))
        return folder + _render(self.template, self.app_id, when)

    def next_key(self, when: Optional[datetime] = None) -> str:
        base = self.render(when)
        if base == self._last_base:
            self._repeat += 1
            key = f"{base}.{self._repeat}"
        else:
            self._last_base = base
            self._repeat = 0
            key = base
        if self.compress:
            key += GZIP_SUFFIX
        return key


__all__ = ["ObjectKeyNamer", "normalize_folder", "APP_TOKEN", "GZIP_SUFFIX"]
