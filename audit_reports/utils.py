"""Utility helpers for string normalization and path handling."""

from __future__ import annotations

import logging
import re
from typing import Dict, Iterable

logger = logging.getLogger("audit_reports")

CLIENT_SLUG_PATTERN = re.compile(r"[^a-z0-9]")
UNSAFE_FILENAME_PATTERN = re.compile(r'[<>:"/\\|?*]')


def client_slug(client: str, fallback: str = "unknown") -> str:
    """Folder name for a client: lowercase, every non ``[a-z0-9]`` char becomes ``-``."""
    if not client:
        return fallback
    return CLIENT_SLUG_PATTERN.sub("-", client.lower())


def client_folders(clients: Iterable[str]) -> Dict[str, str]:
    """Map each distinct client to its own folder, in first-seen order.

    Clients whose slugs collide get ``-2``, ``-3``... appended so no report
    overwrites another.
    """
    folders: Dict[str, str] = {}
    owners: Dict[str, str] = {}
    for client in clients:
        if client in folders:
            continue
        base = client_slug(client)
        folder, suffix = base, 2
        while folder in owners:
            folder = f"{base}-{suffix}"
            suffix += 1
        if folder != base:
            logger.warning(
                "Clients %r and %r share folder %s; using %s for %r",
                owners[base],
                client,
                base,
                folder,
                client,
            )
        folders[client] = folder
        owners[folder] = client
    return folders


def sanitize_filename(filename: str) -> str:
    """Replace characters that are invalid in file names."""
    return UNSAFE_FILENAME_PATTERN.sub("_", filename)
