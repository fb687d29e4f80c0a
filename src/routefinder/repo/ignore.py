from __future__ import annotations

from pathlib import Path

DEFAULT_IGNORES = {
    ".git",
    ".svn",
    ".hg",
    ".idea",
    ".vscode",
    ".gradle",
    ".mvn",
    ".routefinder",
    "node_modules",
    "target",
    "build",
    "out",
    "bin",
}

DEFAULT_EXCLUDE_GLOBS = (
    "**/node_modules/**",
    "**/target/**",
    "**/build/**",
)


def should_ignore_dir(dir_path: Path) -> bool:
    return dir_path.name in DEFAULT_IGNORES
