from __future__ import annotations

from dataclasses import dataclass, field

from .kinds import DEFAULT_SCHEME, Scheme
from .store import ResourceStore


@dataclass(frozen=True)
class ControllerContext:
    """Collaborators for one controller instance, passed to every component."""

    store: ResourceStore
    scheme: Scheme = field(default=DEFAULT_SCHEME)
