"""Writes the OpenSSH `allowed_signers` file.

Format (https://man.openbsd.org/ssh-keygen.1#ALLOWED_SIGNERS):

    principals [valid-after=TS] [valid-before=TS] keytype base64 [comment]

Notes:
- The file is always rewritten from scratch: previous content is discarded.
- Entries are sorted, so unchanged keys produce byte-identical files.
- There is no temp-file/rename step; an I/O error mid-write can leave a
  partially written file behind.
"""

from __future__ import annotations

import logging
from pathlib import Path

from hanko.core.domain.models import AllowedSignersFile

logger = logging.getLogger(__name__)


def write_allowed_signers(file: AllowedSignersFile) -> Path:
    """Write `file` to `file.path`, truncating it, and return the path."""

    logger.debug("Writing %d entries to %s", len(file.entries), file.path)
    with file.path.open("w", encoding="utf-8", newline="\n") as fh:
        fh.write(file.render())
    return file.path
