"""Raw terminal mode for the duration of the log stream."""

import logging
from contextlib import contextmanager
from typing import IO, Iterator

try:
    import termios
    import tty
except ImportError:  # Windows
    termios = None
    tty = None

logger = logging.getLogger(__name__)


@contextmanager
def raw_terminal(stream: IO, enabled: bool = True) -> Iterator[bool]:
    """Put ``stream``'s terminal in raw mode and restore it on exit.

    Signal generation (ISIG) stays on so Ctrl-C still delivers SIGINT, and
    output post-processing stays on so log lines keep their carriage returns.
    Yields whether raw mode was actually entered.
    """
    if not enabled or termios is None or not _isatty(stream):
        yield False
        return

    fd = stream.fileno()
    saved = None
    entered = False
    try:
        saved = termios.tcgetattr(fd)
        tty.setraw(fd, termios.TCSANOW)
        attrs = termios.tcgetattr(fd)
        attrs[1] |= termios.OPOST  # oflag
        attrs[3] |= termios.ISIG  # lflag
        termios.tcsetattr(fd, termios.TCSANOW, attrs)
        entered = True
    except termios.error as e:
        if saved is not None:
            termios.tcsetattr(fd, termios.TCSADRAIN, saved)
        logger.warning(f"Could not enter raw terminal mode: {e}")

    if not entered:
        yield False
        return

    try:
        yield True
    finally:
        termios.tcsetattr(fd, termios.TCSADRAIN, saved)


def _isatty(stream: IO) -> bool:
    try:
        return stream.isatty()
    except (AttributeError, ValueError):
        return False
