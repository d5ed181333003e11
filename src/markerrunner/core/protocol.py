"""Marker protocol primitives: escaping and line writing.

Each logical event is written as ``\\n<MARKER:MODE:LABEL>payload\\n``. Payloads
must never contain a raw line separator, otherwise the consumer would read
the remainder as a new protocol line.
"""

import re
import threading
from typing import Optional, TextIO

LINE_FEED_TOKEN = "<:LF:>"

DESCRIBE = "DESCRIBE"
IT = "IT"
PASSED = "PASSED"
FAILED = "FAILED"
ERROR = "ERROR"
LOG = "LOG"
COMPLETEDIN = "COMPLETEDIN"

# LOG modes
ESC = "ESC"

_LINE_SEPARATORS = re.compile(r"\r\n|\r|\n")


def escape(text: Optional[str], token: str = LINE_FEED_TOKEN) -> str:
    """Replace every line separator in ``text`` with ``token``.

    ``None`` and empty text both become an empty string.
    """
    if not text:
        return ""
    return _LINE_SEPARATORS.sub(token, text)


def format_marker(marker: str, payload: str = "", mode: str = "", label: str = "") -> str:
    """Render one protocol line, including its leading blank line."""
    return f"\n<{marker}:{mode}:{label}>{payload}\n"


class MarkerWriter:
    """Writes escaped marker lines to a text stream.

    Writes are serialized so a marker line is never interleaved with another
    thread's marker.
    """

    def __init__(self, stream: TextIO, line_feed_token: str = LINE_FEED_TOKEN):
        self.stream = stream
        self.line_feed_token = line_feed_token
        self._lock = threading.Lock()

    def escape(self, text: Optional[str]) -> str:
        return escape(text, self.line_feed_token)

    def write(self, marker: str, payload: Optional[str] = "", mode: str = "", label: str = "") -> None:
        """Escape ``payload`` and write it as a single marker line."""
        line = format_marker(marker, self.escape(payload), mode, label)
        with self._lock:
            self.stream.write(line)
            self.stream.flush()
