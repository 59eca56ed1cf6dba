"""Run context threaded through every generation call."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class RunContext:
    """Explicit replacement for ambient config access.

    Attributes:
        project_root: Project directory used for config lookups. May be None.
        session: Caller-supplied session object (e.g. ``{"env": {...}}``)
            carrying per-invocation credential overrides. Passed through
            unmodified and never mutated.
    """

    project_root: str | None = None
    session: Any = None

    @classmethod
    def for_path(cls, path: str | Path | None, session: Any = None) -> "RunContext":
        """Build a context from a filesystem path, resolving it if given."""
        if path is None:
            return cls(project_root=None, session=session)
        return cls(project_root=str(Path(path).resolve()), session=session)

    def session_env(self) -> dict[str, str]:
        """Get the session's environment overrides, if any."""
        if self.session is None:
            return {}
        if isinstance(self.session, dict):
            env = self.session.get("env")
        else:
            env = getattr(self.session, "env", None)
        return dict(env) if isinstance(env, dict) else {}
