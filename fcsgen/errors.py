"""Error taxonomy and process exit codes.

Every pipeline failure derives from FcsError and carries the exit code of its
category. A run exits with the highest code it encountered, so the numbers
double as a severity order.
"""

from __future__ import annotations

EXIT_OK = 0
EXIT_STRICT_WARNINGS = 1
EXIT_COMPUTATION = 3
EXIT_REFERENCE = 4
EXIT_SCHEMA = 5
EXIT_PARSE = 6
EXIT_IO = 7


class FcsError(Exception):
    """Base class for all pipeline errors."""

    kind = "error"
    exit_code = 1

    def __init__(self, message: str, *, detail: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail

    def as_dict(self) -> dict[str, str | None]:
        return {"kind": self.kind, "message": self.message, "detail": self.detail}

    def __reduce__(self):
        # Subclasses have different __init__ signatures; restore without calling them.
        return (_restore, (type(self), self.args, dict(self.__dict__)))


def _restore(cls: type, args: tuple, state: dict) -> Exception:
    err = cls.__new__(cls)
    Exception.__init__(err, *args)
    err.__dict__.update(state)
    return err


class ParseError(FcsError):
    """Malformed source syntax or an uncoercible field value."""

    kind = "parse"
    exit_code = EXIT_PARSE


class MissingReferenceError(FcsError):
    """A cross-file reference (vehicle -> module -> weapon) did not resolve."""

    kind = "missing_reference"
    exit_code = EXIT_REFERENCE

    def __init__(self, identifier: str, *, detail: str | None = None) -> None:
        super().__init__(f"Unresolved reference: {identifier}", detail=detail or identifier)
        self.identifier = identifier


class SchemaError(FcsError):
    """A required field is absent at model-build time."""

    kind = "schema"
    exit_code = EXIT_SCHEMA


class ComputationError(FcsError):
    """A projectile has no resolvable penetration law."""

    kind = "computation"
    exit_code = EXIT_COMPUTATION


class CacheIOError(FcsError):
    """The cache manifest could not be read or written."""

    kind = "cache_io"
    exit_code = EXIT_IO


class EmitIOError(FcsError):
    """An output file could not be written."""

    kind = "emit_io"
    exit_code = EXIT_IO


_BY_KIND = {
    cls.kind: cls
    for cls in (ParseError, MissingReferenceError, SchemaError, ComputationError, CacheIOError, EmitIOError)
}


def error_from_dict(d: dict) -> FcsError:
    """Rebuild an error stored with ``as_dict``; an unknown kind comes back as a plain FcsError."""
    cls = _BY_KIND.get(str(d.get("kind")), FcsError)
    err = cls.__new__(cls)
    FcsError.__init__(err, str(d.get("message") or ""), detail=d.get("detail"))
    return err


class SelectionWarning(UserWarning):
    """Non-fatal: an armament entry could not be classified with confidence."""

    kind = "selection"

    def __init__(self, message: str, *, detail: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail

    def as_dict(self) -> dict[str, str | None]:
        return {"kind": self.kind, "message": self.message, "detail": self.detail}

    def __reduce__(self):
        return (_restore, (type(self), self.args, dict(self.__dict__)))


def exit_code_for(errors: list[FcsError]) -> int:
    """Most severe exit code among ``errors`` (0 when empty)."""
    return max((e.exit_code for e in errors), default=EXIT_OK)
