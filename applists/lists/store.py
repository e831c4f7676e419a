"""ListStore — read want-list files into canonical identifier sets."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

from applists.errors import ListFileError

log = logging.getLogger(__name__)

COMMENT_MARKER = "#"

LineParser = Callable[[str], str | None]


def strip_inline_comment(line: str) -> str:
    """Return the leading field of an ``ID # comment`` line, trimmed."""
    return line.split(COMMENT_MARKER, 1)[0].strip()


class ListStore:
    """Want-list files living in one directory.

    A missing or empty file is an empty want list, never an error. A file
    that exists but cannot be read or decoded raises ``ListFileError``. Lines are
    trimmed; blank lines and lines starting with ``#`` are dropped; the rest
    go through the backend's line parser, which may normalize the identifier
    or reject the line by returning ``None``.
    """

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def path_for(self, filename: str) -> Path:
        return self.directory / filename

    def exists(self, filename: str) -> bool:
        return self.path_for(filename).is_file()

    def load(self, path: str | Path, parse_line: LineParser | None = None) -> frozenset[str]:
        path = Path(path)
        if not path.is_file():
            return frozenset()

        try:
            with open(path, encoding="utf-8") as f:
                lines = f.read().splitlines()
        except (OSError, UnicodeDecodeError) as e:
            raise ListFileError(str(path), str(e)) from e

        identifiers: set[str] = set()
        rejected = 0
        for raw in lines:
            line = raw.strip()
            if not line or line.startswith(COMMENT_MARKER):
                continue
            ident = parse_line(line) if parse_line else line
            if ident:
                identifiers.add(ident)
            else:
                rejected += 1

        if rejected:
            log.debug("%s: ignored %d line(s) that are not valid identifiers", path.name, rejected)
        return frozenset(identifiers)

    def load_list(self, filename: str, parse_line: LineParser | None = None) -> frozenset[str]:
        return self.load(self.path_for(filename), parse_line)
