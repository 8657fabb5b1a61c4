"""
File name filtering for Drive River.
"""

from fnmatch import fnmatch


def matches_any(title: str, patterns: list) -> bool:
    title = title.lower()
    return any(fnmatch(title, pattern.lower()) for pattern in patterns)


def is_indexable(title: str, includes: list, excludes: list) -> bool:
    """
    Decide whether a file should be indexed based on its title.

    Excludes win over includes. With no includes, everything not excluded
    is indexed. Matching is case-insensitive.
    """
    if excludes and matches_any(title, excludes):
        return False
    if includes:
        return matches_any(title, includes)
    return True
