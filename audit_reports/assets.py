"""Stylesheet compilation and static asset copying for client folders."""

from __future__ import annotations

import logging
import re
import shutil
import time
from pathlib import Path
from typing import Iterable, List, Optional

import sass

logger = logging.getLogger("audit_reports")

STYLESHEET_SOURCE = Path("styles") / "report.scss"
STYLESHEET_NAME = "report.css"
VERSIONED_STYLESHEET = re.compile(r"^report\.(\d+)\.css$")
STATIC_FOLDER = "static"
RESERVED_FOLDERS = {STATIC_FOLDER, "assets"}


def compile_stylesheet(source: Path) -> str:
    """Compile an SCSS entry point to compressed CSS."""
    source = Path(source)
    return sass.compile(
        filename=str(source),
        output_style="compressed",
        include_paths=[str(source.parent)],
    )


def prune_versioned_stylesheets(styles_dir: Path, keep: int = 3) -> List[Path]:
    """Delete all but the ``keep`` newest ``report.<version>.css`` files."""
    versioned = []
    for path in Path(styles_dir).iterdir():
        match = VERSIONED_STYLESHEET.match(path.name)
        if match and path.is_file():
            versioned.append((int(match.group(1)), path))
    versioned.sort(reverse=True)

    removed = []
    for _, path in versioned[keep:]:
        try:
            path.unlink()
        except OSError as exc:
            logger.warning("Could not remove old stylesheet %s: %s", path, exc)
            continue
        logger.debug("Removed old stylesheet %s", path.name)
        removed.append(path)
    return removed


def write_stylesheet(
    client_dir: Path,
    css: str,
    version: Optional[str] = None,
    keep: int = 3,
) -> Path:
    """Write ``report.css`` plus a versioned copy into a client folder."""
    styles_dir = Path(client_dir) / "assets" / "styles"
    styles_dir.mkdir(parents=True, exist_ok=True)
    version = version or str(int(time.time() * 1000))
    (styles_dir / f"report.{version}.css").write_text(css, encoding="utf-8")
    target = styles_dir / STYLESHEET_NAME
    target.write_text(css, encoding="utf-8")
    prune_versioned_stylesheets(styles_dir, keep)
    return target


def copy_directory(src: Path, dest: Path) -> bool:
    """Copy a directory tree; a missing source is logged and skipped."""
    if not Path(src).is_dir():
        logger.warning("Asset directory %s not found, skipping", src)
        return False
    shutil.copytree(src, dest, dirs_exist_ok=True)
    return True


def list_client_folders(output_root: Path) -> List[str]:
    """Client report folders under the output root, sorted by name."""
    root = Path(output_root)
    if not root.is_dir():
        return []
    return sorted(
        item.name
        for item in root.iterdir()
        if item.is_dir() and item.name not in RESERVED_FOLDERS and not item.name.startswith(".")
    )


def copy_assets(
    output_root: Path,
    assets_dir: Path,
    client_folders: Optional[Iterable[str]] = None,
    version: Optional[str] = None,
    keep: int = 3,
) -> List[str]:
    """Populate every client folder with fonts, scripts and a compiled stylesheet.

    Returns the folders whose stylesheet compiled successfully. Failures are
    isolated to the client they happen in.
    """
    output_root = Path(output_root)
    assets_dir = Path(assets_dir)
    folders = list(client_folders) if client_folders is not None else list_client_folders(output_root)
    if not folders:
        logger.info("No client folders found, skipping asset copy")
        return []

    try:
        copy_directory(assets_dir / "img", output_root / STATIC_FOLDER)
    except OSError as exc:
        logger.warning("Could not copy static images: %s", exc)

    completed: List[str] = []
    for folder in folders:
        client_dir = output_root / folder
        for name in ("fonts", "js"):
            try:
                copy_directory(assets_dir / name, client_dir / "assets" / name)
            except OSError as exc:
                logger.warning("Could not copy %s to %s: %s", name, folder, exc)
        try:
            css = compile_stylesheet(assets_dir / STYLESHEET_SOURCE)
            write_stylesheet(client_dir, css, version=version, keep=keep)
        except (sass.CompileError, OSError) as exc:
            logger.warning("Could not compile stylesheet for %s: %s", folder, exc)
            continue
        completed.append(folder)
    logger.info("Copied assets to %d client folder(s)", len(folders))
    return completed
