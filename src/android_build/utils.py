import re
from itertools import zip_longest
from typing import Optional

from .consts import API_LEVEL_MAPPING

_PROPERTY_ESCAPES: dict[str, str] = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}
_UNICODE_ESCAPE_PATTERN: re.Pattern = re.compile(r"[0-9A-Fa-f]{4}")


class VersionCompare:
    _INSTANCE: Optional['VersionCompare'] = None

    @staticmethod
    def instance() -> 'VersionCompare':
        if VersionCompare._INSTANCE is None:
            VersionCompare._INSTANCE = VersionCompare()
        return VersionCompare._INSTANCE

    def __init__(self):
        self._version_pattern: re.Pattern = re.compile(r"(\d+)([a-zA-Z]*)")

    def compare(self, v1: str, v2: str) -> int:
        if v1 == v2:
            return 0

        m1 = self._version_pattern.findall(v1)
        m2 = self._version_pattern.findall(v2)

        for p1, p2 in zip_longest(m1, m2):
            c1, s1 = p1 if p1 is not None else (0, "")
            c2, s2 = p2 if p2 is not None else (0, "")
            c1, c2 = int(c1), int(c2)

            if c1 < c2:
                return -1
            elif c1 > c2:
                return 1
            elif s1 < s2:
                return -1
            elif s1 > s2:
                return 1

        return 0

    def max(self, v1: str, v2: str) -> str:
        return v2 if self.compare(v1, v2) < 0 else v1


def _unescape_property(text: str) -> str:
    result = []
    chars = iter(text)
    for c in chars:
        if c == "\\":
            escaped = next(chars, "")
            if escaped == "u":
                code = "".join(next(chars, "") for _ in range(4))
                # A malformed escape such as "\u12" is kept as written
                if _UNICODE_ESCAPE_PATTERN.fullmatch(code):
                    result.append(chr(int(code, 16)))
                else:
                    result.append(f"\\u{code}")
            else:
                result.append(_PROPERTY_ESCAPES.get(escaped, escaped))
        else:
            result.append(c)
    return "".join(result)


def _split_property(line: str) -> tuple[str, str]:
    i = 0
    while i < len(line):
        c = line[i]
        if c == "\\":
            i += 2
            continue
        if c in "=: \t":
            key = line[:i]
            rest = line[i:].lstrip(" \t")
            if rest[:1] in ("=", ":") and c in " \t":
                rest = rest[1:].lstrip(" \t")
            elif c in "=:":
                rest = rest[1:].lstrip(" \t")
            return key, rest
        i += 1
    return line, ""


def parse_properties(content: str) -> dict[str, str]:
    """Parse a Java ``.properties`` document such as Gradle's ``local.properties``."""
    result: dict[str, str] = {}
    logical_line = ""
    for raw_line in content.splitlines():
        line = raw_line.lstrip()
        if not logical_line and (len(line) == 0 or line[0] in "#!"):
            continue
        trailing = len(line) - len(line.rstrip("\\"))
        if trailing % 2 == 1:
            logical_line += line[:-1]
            continue
        logical_line += line
        key, value = _split_property(logical_line)
        result[_unescape_property(key)] = _unescape_property(value)
        logical_line = ""
    if logical_line:
        key, value = _split_property(logical_line)
        result[_unescape_property(key)] = _unescape_property(value)
    return result


def api_level_versions(api: int) -> list[str]:
    if api <= 0:
        raise ValueError("Non positive API level!")
    return list(API_LEVEL_MAPPING.get(api, []))


def java_version_name(constant: str) -> str:
    # JavaVersion.VERSION_1_8 -> "1.8", JavaVersion.VERSION_17 -> "17"
    if not constant.startswith("VERSION_"):
        raise ValueError(f"Unknown java version constant: {constant}")
    return constant[len("VERSION_"):].replace("_", ".")
