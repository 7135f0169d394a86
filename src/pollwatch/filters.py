"""Filter hooks that leave entries out of directory listings.

A hook receives the FileRecord of a listed entry and returns True when the
entry should be skipped. Skipping a directory prunes its whole subtree.
"""

import re
from typing import Callable, Iterable, Pattern, Union

from watchdog.utils.patterns import match_any_paths

from .models import FileRecord


FilterHook = Callable[[FileRecord], bool]


def _compile(pattern: Union[str, Pattern]) -> Pattern:
    if isinstance(pattern, str):
        return re.compile(pattern)
    return pattern


def regex_ignore_hook(pattern: Union[str, Pattern], use_full_path: bool = False) -> FilterHook:
    """
    Skip entries whose name (or full path) matches a regular expression.

    Args:
        pattern: Regular expression, as a string or compiled pattern
        use_full_path: Match against the full path instead of the base name

    Returns:
        A filter hook
    """
    regex = _compile(pattern)

    def hook(record: FileRecord) -> bool:
        target = str(record.path) if use_full_path else record.name
        return regex.search(target) is not None

    return hook


def regex_filter_hook(pattern: Union[str, Pattern], use_full_path: bool = False) -> FilterHook:
    """
    Keep only files whose name (or full path) matches a regular expression.

    Directories always pass so that matching files further down the tree
    are still found.
    """
    regex = _compile(pattern)

    def hook(record: FileRecord) -> bool:
        if record.is_dir:
            return False
        target = str(record.path) if use_full_path else record.name
        return regex.search(target) is None

    return hook


def glob_ignore_hook(patterns: Iterable[str], case_sensitive: bool = True) -> FilterHook:
    """
    Skip entries matching any of the given glob patterns.

    Patterns are matched from the right, so "*.tmp" matches by name and
    ".git/*" matches anything directly inside a .git folder.
    """
    patterns = list(patterns)

    def hook(record: FileRecord) -> bool:
        return match_any_paths(
            [record.path],
            included_patterns=patterns,
            case_sensitive=case_sensitive,
        )

    return hook
