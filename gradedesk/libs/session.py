"""Explicit session context carrying backend credentials and the instructor profile."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from gradedesk.libs.config_loader import ConfigType, get_config

LOG = logging.getLogger(__name__)


@dataclass
class SessionContext:
    """Credentials for one logged-in instructor.

    Created at login and torn down at logout; components that talk to the
    backend receive it explicitly instead of reading global state.
    """
    base_url: str
    token: Optional[str] = None
    profile: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_config(cls, configs: ConfigType) -> "SessionContext":
        """Build a context from the ``backend`` config section."""
        return cls(
            base_url=get_config("backend.base_url", configs),
            token=get_config("backend.token", configs, default=None) or None,
        )

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    def begin(self, token: str, profile: Optional[Dict[str, Any]] = None) -> None:
        """Start an authenticated session."""
        self.token = token
        self.profile = dict(profile or {})
        LOG.debug("Session started for %s", self.profile.get("username", "<unknown>"))

    def end(self) -> None:
        """Drop credentials and profile (logout)."""
        self.token = None
        self.profile = {}
        LOG.debug("Session ended")

    def auth_headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Token {self.token}"
        return headers
