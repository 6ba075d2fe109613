"""Header validation and the case-insensitive header store."""

from __future__ import annotations

from typing import Any, Iterator, Mapping

FORBIDDEN_REQUEST_HEADERS = frozenset(
    {
        "accept-charset",
        "accept-encoding",
        "access-control-request-headers",
        "access-control-request-method",
        "connection",
        "content-length",
        "content-transfer-encoding",
        "cookie",
        "cookie2",
        "date",
        "expect",
        "host",
        "keep-alive",
        "origin",
        "referer",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
        "via",
    }
)

FORBIDDEN_METHODS = frozenset({"trace", "track", "connect"})


class HeaderPolicy:
    """Pure predicates over header names and request methods.

    User-Agent is deliberately allowed even though browsers forbid it.
    """

    def __init__(self, *, disable_header_check: bool = False) -> None:
        self.disable_header_check = disable_header_check

    def is_allowed_header(self, name: Any) -> bool:
        if self.disable_header_check:
            return True
        return isinstance(name, str) and name.lower() not in FORBIDDEN_REQUEST_HEADERS

    def is_allowed_method(self, method: Any) -> bool:
        return isinstance(method, str) and method.lower() not in FORBIDDEN_METHODS


_DEFAULT_POLICY = HeaderPolicy()


def is_allowed_header(name: Any) -> bool:
    return _DEFAULT_POLICY.is_allowed_header(name)


def is_allowed_method(method: Any) -> bool:
    return _DEFAULT_POLICY.is_allowed_method(method)


class HeaderSet(Mapping[str, str]):
    """Case-insensitive header mapping.

    Lookups ignore case. ``add`` on a name already present joins the values
    with ``", "`` and keeps the casing of the first occurrence.
    """

    def __init__(self, initial: Mapping[str, Any] | None = None) -> None:
        self._values: dict[str, str] = {}
        self._names: dict[str, str] = {}
        for name, value in (initial or {}).items():
            self.add(name, value)

    def add(self, name: str, value: Any) -> None:
        key = name.lower()
        text = "" if value is None else str(value)
        original = self._names.get(key)
        if original is None:
            self._names[key] = name
            self._values[key] = text
            return
        existing = self._values[key]
        self._values[key] = f"{existing}, {text}" if existing else text

    def set(self, name: str, value: Any) -> None:
        """Replace a value outright, keeping the first casing if present."""
        key = name.lower()
        self._names.setdefault(key, name)
        self._values[key] = "" if value is None else str(value)

    def setdefault_header(self, name: str, value: Any) -> None:
        if name.lower() not in self._values:
            self.set(name, value)

    def discard(self, name: str) -> None:
        key = name.lower()
        self._names.pop(key, None)
        self._values.pop(key, None)

    def clear(self) -> None:
        self._names.clear()
        self._values.clear()

    def copy(self) -> "HeaderSet":
        clone = HeaderSet()
        clone._names = dict(self._names)
        clone._values = dict(self._values)
        return clone

    def to_dict(self) -> dict[str, str]:
        return {self._names[key]: value for key, value in self._values.items()}

    def __getitem__(self, name: str) -> str:
        if not isinstance(name, str):
            raise KeyError(name)
        return self._values[name.lower()]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._names[key] for key in self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"HeaderSet({self.to_dict()!r})"


__all__ = [
    "FORBIDDEN_METHODS",
    "FORBIDDEN_REQUEST_HEADERS",
    "HeaderPolicy",
    "HeaderSet",
    "is_allowed_header",
    "is_allowed_method",
]
