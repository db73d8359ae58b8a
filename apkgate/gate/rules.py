"""
Path glob rules used to decide whether a change is relevant to the Android build.

Supported syntax:
- ``**`` as a whole segment matches any number of directory segments
- ``*`` matches any run of characters within one segment
- ``?`` matches a single character within one segment
- anything else is literal
"""
import re
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Pattern, Tuple

DEFAULT_RULES = (
    "android/**",
    "src/**",
    "public/**",
    "package.json",
    "package-lock.json",
    "capacitor.config.ts",
    "capacitor.config.json",
    ".github/workflows/android-*.yml",
)

_WILDCARDS = ("*", "?")


def normalize_path(path: str) -> str:
    """Normalize a repository-relative path for matching"""
    normalized = path.strip().replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized.lstrip("/")


def _translate_segment(segment: str) -> str:
    out = []
    for ch in segment:
        if ch == "*":
            out.append("[^/]*")
        elif ch == "?":
            out.append("[^/]")
        else:
            out.append(re.escape(ch))
    return "".join(out)


def compile_glob(pattern: str) -> Pattern:
    """
    Translate a glob pattern into an anchored regular expression.

    Args:
        pattern: Glob pattern such as ``android/**`` or ``src/*.ts``

    Returns:
        Compiled regex matching whole normalized paths
    """
    parts = normalize_path(pattern).split("/")
    regex = "^"
    for index, part in enumerate(parts):
        last = index == len(parts) - 1
        if part == "**":
            if last:
                # "dir/**" needs something below dir, a bare "**" matches all
                regex += ".*" if index == 0 else ".+"
            else:
                regex += "(?:[^/]+/)*"
        else:
            regex += _translate_segment(part)
            if not last:
                regex += "/"
    regex += "$"
    return re.compile(regex)


@dataclass(frozen=True)
class PathRule:
    """Single glob rule"""
    pattern: str
    _regex: Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "_regex", compile_glob(self.pattern))

    @property
    def is_literal(self) -> bool:
        return not any(w in self.pattern for w in _WILDCARDS)

    def matches(self, path: str) -> bool:
        candidate = normalize_path(path)
        if self.is_literal:
            return candidate == normalize_path(self.pattern)
        return self._regex.match(candidate) is not None


class PathRuleSet:
    """Ordered, de-duplicated, immutable collection of path rules"""

    def __init__(self, patterns: Iterable[str]):
        seen = []
        for pattern in patterns:
            if not pattern or not pattern.strip():
                continue
            if pattern not in seen:
                seen.append(pattern)
        self._rules: Tuple[PathRule, ...] = tuple(PathRule(p) for p in seen)

    @classmethod
    def default(cls) -> 'PathRuleSet':
        return cls(DEFAULT_RULES)

    @property
    def patterns(self) -> Tuple[str, ...]:
        return tuple(rule.pattern for rule in self._rules)

    def __iter__(self) -> Iterator[PathRule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __repr__(self) -> str:
        return f"PathRuleSet({list(self.patterns)!r})"
