"""
Name derivation for generated Go identifiers
"""

import re
from typing import Optional

from .constants import GO_RESERVED_NAMES


def snake_to_camel(s: str) -> str:
    """Convert snake_case to UpperCamelCase, lowering all-caps words first"""
    parts = s.split("_")
    for i, part in enumerate(parts):
        if part.upper() == part:
            part = part.lower()
        parts[i] = part[:1].upper() + part[1:]
    return "".join(parts)


def snake_to_lower_camel(s: str) -> str:
    if len(s) <= 1:
        return s
    s = snake_to_camel(s)
    return s[:1].lower() + s[1:]


def upper_name(c_name: str, pattern: re.Pattern = None) -> str:
    """Derive an exported Go name from a native name

    If the pattern has a capture group that matched more than two characters,
    only that "meaningful" part is kept. A trailing ``_t`` is dropped when the
    remaining name is longer than three characters.
    """
    s = c_name
    if pattern is not None:
        m = pattern.search(s)
        if m and m.groups() and m.group(1) and len(m.group(1)) > 2:
            s = m.group(1)
    if len(s) > 3 and s.endswith("_t"):
        s = s[:-2]
    return snake_to_camel(s)


def lower_name(c_name: str) -> str:
    """Derive a Go parameter or local name, escaping reserved identifiers"""
    s = snake_to_lower_camel(c_name)
    if s in GO_RESERVED_NAMES:
        s += "_"
    return s


class NameFilter:
    """Selects the native names a package exports and shortens them

    Either a regular expression (optionally with a capture group for the
    meaningful part of the name) or a literal library prefix.
    """

    def __init__(self, pattern: str = None, prefix: str = None):
        if prefix:
            pattern = "^" + re.escape(prefix) + "_?(.*)"
        self.pattern = re.compile(pattern or ".*")

    def matches(self, c_name: str) -> bool:
        return self.pattern.search(c_name) is not None

    def upper_name(self, c_name: str) -> str:
        return upper_name(c_name, self.pattern)


class NameTable:
    """Maps Go names to the native identities that own them within one scope"""

    def __init__(self):
        self._owners = {}  # name -> identity
        self._names = {}   # identity -> name

    def bind(self, name: str, identity: str) -> str:
        """Bind a unique name for identity, appending underscores on collision

        Binding the same identity again returns the name it already holds.
        """
        if identity in self._names:
            return self._names[identity]
        while name in self._owners:
            name += "_"
        self._owners[name] = identity
        self._names[identity] = name
        return name

    def rename(self, identity: str, new_name: str) -> bool:
        """Move identity to new_name if that name is free"""
        if new_name in self._owners:
            return False
        old = self._names.pop(identity, None)
        if old is not None:
            del self._owners[old]
        self._owners[new_name] = identity
        self._names[identity] = new_name
        return True

    def name_of(self, identity: str) -> Optional[str]:
        return self._names.get(identity)

    def owner_of(self, name: str) -> Optional[str]:
        return self._owners.get(name)

    def reset(self):
        self._owners.clear()
        self._names.clear()

    def __contains__(self, name: str) -> bool:
        return name in self._owners

    def __len__(self) -> int:
        return len(self._owners)
