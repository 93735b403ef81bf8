"""
Pathway Addressing
==================

Every context item is addressed by a ``Pathway``: a namespace plus an ordered
list of segments, written ``a3s://<namespace>/<seg1>/<seg2>/...``.

Usage:
    >>> p = Pathway.parse("a3s://knowledge/docs/api")
    >>> p.namespace
    <Namespace.KNOWLEDGE: 'knowledge'>
    >>> str(p.parent())
    'a3s://knowledge/docs'
    >>> Pathway.parse("knowledge/docs").is_prefix_of(p)
    True
"""

from enum import Enum
from functools import total_ordering
from typing import Iterable, List, Optional, Tuple

from a3s_context.errors import InvalidPathwayError

SCHEME = "a3s://"


class Namespace(Enum):
    """Top-level partition of the address space, ordered by declaration."""

    KNOWLEDGE = "knowledge"
    MEMORY = "memory"
    CAPABILITY = "capability"
    SESSION = "session"

    @property
    def order(self) -> int:
        return _NAMESPACE_ORDER[self]

    def as_str(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str) -> Optional["Namespace"]:
        """Return the namespace for ``value`` or None if unknown."""
        try:
            return cls(value)
        except ValueError:
            return None

    def __lt__(self, other):
        if not isinstance(other, Namespace):
            return NotImplemented
        return self.order < other.order

    def __le__(self, other):
        if not isinstance(other, Namespace):
            return NotImplemented
        return self.order <= other.order

    def __gt__(self, other):
        if not isinstance(other, Namespace):
            return NotImplemented
        return self.order > other.order

    def __ge__(self, other):
        if not isinstance(other, Namespace):
            return NotImplemented
        return self.order >= other.order

    def __str__(self) -> str:
        return self.value


_NAMESPACE_ORDER = {ns: i for i, ns in enumerate(Namespace)}


def _validate_segment(segment: str) -> str:
    if not isinstance(segment, str):
        raise InvalidPathwayError(f"segment must be a string, got {type(segment).__name__}")
    if not segment:
        raise InvalidPathwayError("empty segment")
    if "\0" in segment:
        raise InvalidPathwayError(f"segment contains a null byte: {segment!r}")
    if "/" in segment:
        raise InvalidPathwayError(f"segment contains a slash: {segment!r}")
    return segment


@total_ordering
class Pathway:
    """Immutable hierarchical address with structural equality and ordering."""

    __slots__ = ("_namespace", "_segments")

    def __init__(self, namespace: Namespace, segments: Iterable[str] = ()):
        if not isinstance(namespace, Namespace):
            raise InvalidPathwayError(f"not a namespace: {namespace!r}")
        object.__setattr__(self, "_namespace", namespace)
        object.__setattr__(
            self, "_segments", tuple(_validate_segment(s) for s in segments)
        )

    def __setattr__(self, name, value):
        raise AttributeError("Pathway is immutable")

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def new(cls, namespace: Namespace, segments: Iterable[str] = ()) -> "Pathway":
        return cls(namespace, segments)

    @classmethod
    def parse(cls, text: str) -> "Pathway":
        """
        Parse a pathway from its textual form.

        Accepts ``a3s://ns/a/b``, ``/ns/a/b`` and ``ns/a/b``. Empty segments
        produced by repeated slashes are ignored.

        Raises:
            InvalidPathwayError: empty input, missing or unknown namespace,
                or a segment containing a null byte
        """
        if not isinstance(text, str):
            raise InvalidPathwayError(f"expected a string, got {type(text).__name__}")

        path = text.strip()
        if path.startswith(SCHEME):
            path = path[len(SCHEME):]
        elif path.startswith("/"):
            path = path[1:]

        if not path:
            raise InvalidPathwayError("Empty pathway")

        parts = [p for p in path.split("/") if p]
        if not parts:
            raise InvalidPathwayError("No namespace specified")

        namespace = Namespace.parse(parts[0])
        if namespace is None:
            raise InvalidPathwayError(f"Invalid namespace: {parts[0]}")

        return cls(namespace, parts[1:])

    @classmethod
    def root(cls, namespace: Namespace) -> "Pathway":
        return cls(namespace)

    @classmethod
    def _from_suffix(cls, namespace: Namespace, path: str) -> "Pathway":
        return cls(namespace, [p for p in path.split("/") if p])

    @classmethod
    def knowledge(cls, path: str = "") -> "Pathway":
        return cls._from_suffix(Namespace.KNOWLEDGE, path)

    @classmethod
    def memory(cls, path: str = "") -> "Pathway":
        return cls._from_suffix(Namespace.MEMORY, path)

    @classmethod
    def capability(cls, path: str = "") -> "Pathway":
        return cls._from_suffix(Namespace.CAPABILITY, path)

    @classmethod
    def session(cls, path: str = "") -> "Pathway":
        return cls._from_suffix(Namespace.SESSION, path)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def namespace(self) -> Namespace:
        return self._namespace

    @property
    def segments(self) -> Tuple[str, ...]:
        return self._segments

    @property
    def name(self) -> Optional[str]:
        return self._segments[-1] if self._segments else None

    @property
    def depth(self) -> int:
        return len(self._segments)

    def is_root(self) -> bool:
        return not self._segments

    def parent(self) -> Optional["Pathway"]:
        if not self._segments:
            return None
        return Pathway(self._namespace, self._segments[:-1])

    def join(self, *segments: str) -> "Pathway":
        """Append one or more segments."""
        return Pathway(self._namespace, self._segments + tuple(segments))

    def is_prefix_of(self, other: "Pathway") -> bool:
        if self._namespace != other._namespace:
            return False
        if len(self._segments) > len(other._segments):
            return False
        return other._segments[:len(self._segments)] == self._segments

    def ancestors(self) -> List["Pathway"]:
        """Return every proper ancestor, nearest first."""
        result = []
        current = self.parent()
        while current is not None:
            result.append(current)
            current = current.parent()
        return result

    def to_relative(self) -> str:
        if not self._segments:
            return self._namespace.value
        return f"{self._namespace.value}/{'/'.join(self._segments)}"

    def to_string(self) -> str:
        return f"{SCHEME}{self.to_relative()}"

    # ------------------------------------------------------------------
    # Value semantics
    # ------------------------------------------------------------------

    def _key(self):
        return (self._namespace.order, self._segments)

    def __eq__(self, other):
        if not isinstance(other, Pathway):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other):
        if not isinstance(other, Pathway):
            return NotImplemented
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash((self._namespace, self._segments))

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"Pathway({self.to_string()!r})"

    def __reduce__(self):
        return (Pathway, (self._namespace, self._segments))
