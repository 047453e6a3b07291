from dataclasses import dataclass
from typing import *


@dataclass(frozen=True)
class PlayerClass:
    player_class_path: str


class NoMatchingClassError(LookupError):
    def __init__(self, class_path: str):
        super().__init__(f"No class matches path {class_path!r}")
        self.class_path = class_path


def resolve_class(class_path: str, classes: Mapping[str, Any],
                  attr: str = "player_class_path") -> str:
    """Return the first key in `classes` whose record has exactly `class_path`.

    There is no approximate fallback: a miss raises NoMatchingClassError.
    """
    for key, record in classes.items():
        if getattr(record, attr) == class_path:
            return key
    raise NoMatchingClassError(class_path)


def levenshtein(s: str, t: str) -> int:
    """Edit distance between two strings (insert/delete/substitute cost 1)."""
    n = len(s)
    m = len(t)
    if n == 0:
        return m
    if m == 0:
        return n

    d = [[0] * (m + 1) for _ in range(n + 1)]
    for i in range(n + 1):
        d[i][0] = i
    for j in range(m + 1):
        d[0][j] = j

    for i in range(1, n + 1):
        for j in range(1, m + 1):
            cost = 0 if s[i - 1] == t[j - 1] else 1
            d[i][j] = min(d[i - 1][j] + 1,
                          d[i][j - 1] + 1,
                          d[i - 1][j - 1] + cost)
    return d[n][m]
