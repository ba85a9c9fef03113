"""
Script sanitizing and batch splitting for uploaded schema scripts.

Uploaded scripts usually come from a database export: they create their own
database, switch to it, and separate batches with ``GO`` lines. The audit
always runs against the configured database, so those lines are removed.
"""

import re
from typing import List

from utils.config import SCRIPT_BATCH_SEPARATOR

_SKIPPED_PREFIXES = ("CREATE DATABASE", "USE ")
_COMMENT_PREFIX = "--"


def clean_script(script: str) -> str:
    """
    Drop ``CREATE DATABASE``, ``USE`` and ``--`` comment lines.

    Lines are trimmed; everything else is kept in order.
    """
    kept = []
    for line in script.splitlines():
        stripped = line.strip()
        upper = stripped.upper()
        if upper.startswith(_SKIPPED_PREFIXES) or stripped.startswith(_COMMENT_PREFIX):
            continue
        kept.append(stripped)
    return "\n".join(kept)


def split_batches(script: str, separator: str = SCRIPT_BATCH_SEPARATOR) -> List[str]:
    """
    Split on lines holding only the batch separator (case-insensitive,
    optional trailing semicolon). Empty segments are dropped.
    """
    pattern = re.compile(
        rf"^[ \t]*{re.escape(separator)}[ \t]*;?[ \t]*$",
        re.IGNORECASE | re.MULTILINE,
    )
    return [segment.strip() for segment in pattern.split(script) if segment.strip()]


def prepare_statements(script: str, separator: str = SCRIPT_BATCH_SEPARATOR) -> List[str]:
    """Clean a raw script and return its statements in execution order."""
    return split_batches(clean_script(script), separator)
