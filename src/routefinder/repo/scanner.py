from __future__ import annotations

import os
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterable

from routefinder.repo.ignore import should_ignore_dir


def scan_source_files(
    repo_path: Path,
    include_globs: Iterable[str] = ("**/*.java",),
    exclude_globs: Iterable[str] = (),
    max_files: int | None = None,
) -> list[str]:
    """
    Return absolute file paths (as strings) under repo_path matching any include
    glob and no exclude glob. Globs are matched against the repo-relative POSIX path.
    """
    includes = list(include_globs)
    excludes = list(exclude_globs)
    out: list[str] = []
    for root, dirs, files in _walk(repo_path):
        root_p = Path(root)

        # prune ignored dirs
        dirs[:] = sorted(d for d in dirs if not should_ignore_dir(root_p / d))

        for f in sorted(files):
            full = root_p / f
            rel = full.relative_to(repo_path).as_posix()
            if not any(glob_match(rel, g) for g in includes):
                continue
            if any(glob_match(rel, g) for g in excludes):
                continue
            out.append(str(full.resolve()))
            if max_files is not None and len(out) >= max_files:
                return out
    return out


def glob_match(rel_path: str, pattern: str) -> bool:
    # "**/" also matches zero directories
    if fnmatchcase(rel_path, pattern):
        return True
    return pattern.startswith("**/") and fnmatchcase(rel_path, pattern[3:])


def _walk(repo_path: Path):
    # Separate helper to make unit testing easier (can be mocked)
    return os.walk(repo_path)
