from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(eq=False)
class LifecycleError(Exception):
    """Domain failure surfaced to the caller as ``{ok: false, error: code}``."""

    code: str
    message: str
    status_code: int = 400
    details: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.message


def forbidden(message: str = "Forbidden") -> LifecycleError:
    return LifecycleError("forbidden", message, 403)


def not_found(entity: str = "request") -> LifecycleError:
    return LifecycleError("not_found", f"{entity.capitalize()} not found", 404)


def document_not_found() -> LifecycleError:
    return LifecycleError("document_not_found", "No contract document for this request", 404)


def invalid_transition(current: str, target: str) -> LifecycleError:
    return LifecycleError(
        "invalid_transition",
        f"Cannot move request from {current} to {target}",
        409,
        {"from_status": current, "to_status": target},
    )


def version_conflict(expected: int) -> LifecycleError:
    return LifecycleError(
        "version_conflict",
        "Request was modified by another operation",
        409,
        {"expected_version": expected},
    )
