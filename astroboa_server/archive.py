from __future__ import annotations
import os
import shutil
import zipfile
from dataclasses import dataclass
from pathlib import Path
from .errors import ExtractionError, SymlinkError
from .logging_setup import get_logger

log = get_logger("archive")

@dataclass
class ExtractResult:
    written: int = 0
    skipped: int = 0

def _target(dest: Path, name: str) -> Path:
    target = (dest / name).resolve()
    if not target.is_relative_to(dest.resolve()):
        raise ExtractionError(f"Archive entry escapes the destination directory: {name}")
    return target

def extract(archive_path: Path, dest_dir: Path) -> ExtractResult:
    """Extract file entries of a zip archive below ``dest_dir``.

    Directory entries are skipped (parents are created from file paths).
    A file already present with the size recorded in the archive is left
    untouched; a present file with a different size is extracted again.
    """
    archive_path, dest_dir = Path(archive_path), Path(dest_dir)
    result = ExtractResult()
    log.info("Extracting %s into %s", archive_path, dest_dir)
    try:
        with zipfile.ZipFile(archive_path) as zf:
            for info in zf.infolist():
                if info.is_dir():
                    continue
                target = _target(dest_dir, info.filename)
                if target.is_file() and target.stat().st_size == info.file_size:
                    result.skipped += 1
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                with zf.open(info) as src, open(target, "wb") as dst:
                    shutil.copyfileobj(src, dst)
                mode = (info.external_attr >> 16) & 0o777
                if mode:
                    os.chmod(target, mode)
                result.written += 1
    except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError) as e:
        raise ExtractionError(f"Failed to extract {archive_path} into {dest_dir}: {e}") from e
    log.info("Extracted %s: %d files written, %d already present", archive_path.name, result.written, result.skipped)
    return result

def create_stable_alias(parent_dir: Path, pattern: str, alias_name: str) -> Path:
    """Link ``parent_dir/alias_name`` to the versioned directory matching ``pattern``."""
    parent_dir = Path(parent_dir)
    alias = parent_dir / alias_name
    candidates = sorted(
        p for p in parent_dir.glob(pattern)
        if p.name != alias_name and p.is_dir() and not p.is_symlink()
    )
    if not candidates:
        raise SymlinkError(f"No directory matching '{pattern}' found in {parent_dir}")
    if len(candidates) > 1:
        log.warning("Several directories match '%s' in %s, using %s", pattern, parent_dir, candidates[-1].name)
    target = candidates[-1]

    if alias.is_symlink():
        current = Path(os.readlink(alias))
        if not current.is_absolute():
            current = parent_dir / current
        if current.resolve() == target.resolve():
            log.info("Symbolic link already correct: %s -> %s", alias, target)
            return alias
        raise SymlinkError(f"{alias} already links to {current}, expected {target}")
    if alias.exists():
        raise SymlinkError(f"{alias} exists and is not a symbolic link")

    try:
        os.symlink(str(target), str(alias))
    except OSError as e:
        raise SymlinkError(f"Failed to create symbolic link from {target} to {alias}: {e}") from e
    log.info("Added symbolic link %s -> %s", alias, target)
    return alias
