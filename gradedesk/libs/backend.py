"""Async REST client for the grading backend."""

import logging
from typing import Any, Dict, Optional

import httpx

from gradedesk.errors import NetworkError, NotFoundError, SchemaError
from gradedesk.libs.config_loader import ConfigType, get_config
from gradedesk.libs.session import SessionContext

LOG = logging.getLogger(__name__)

logging.getLogger("httpx").setLevel(logging.WARNING)

LOGIN_PATH = "/api/login/"
EXAMS_PATH = "/api/exams/"
EXAM_SUBMISSIONS_PATH = "/api/exams/{exam_id}/submissions/"
AUTO_GRADE_PATH = "/api/courses/{course_id}/exams/{exam_id}/students/{student_id}/auto-grade/"
SAVE_GRADES_PATH = "/api/courses/{course_id}/exams/{exam_id}/students/{student_id}/grades/"
EXAM_PATH = "/api/courses/{course_id}/exams/{exam_id}/"


class BackendClient:
    """Thin wrapper over ``httpx.AsyncClient`` that maps failures onto grading errors."""

    def __init__(self, session: SessionContext, timeout: float = 30.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize the client.

        Args:
            session: Session context providing the base URL and token
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests to fake the backend)
        """
        self.session = session
        self._client = httpx.AsyncClient(
            base_url=session.base_url,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_config(cls, configs: ConfigType, session: Optional[SessionContext] = None,
                    transport: Optional[httpx.AsyncBaseTransport] = None) -> "BackendClient":
        session = session or SessionContext.from_config(configs)
        timeout = float(get_config("backend.timeout", configs, default=30.0))
        return cls(session, timeout=timeout, transport=transport)

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get_json(self, path: str) -> Any:
        return await self._request("GET", path)

    async def post_json(self, path: str, payload: Dict[str, Any]) -> Any:
        return await self._request("POST", path, json=payload)

    async def put_json(self, path: str, payload: Dict[str, Any]) -> Any:
        return await self._request("PUT", path, json=payload)

    async def login(self, username: str, password: str) -> SessionContext:
        """Exchange credentials for a token and start the session."""
        data = await self.post_json(LOGIN_PATH, {"username": username, "password": password})
        if not isinstance(data, dict) or not data.get("token"):
            raise SchemaError("Login response did not include a token")
        profile = data.get("professor") or {"username": username}
        self.session.begin(data["token"], profile)
        LOG.info("Logged in as %s", username)
        return self.session

    def logout(self) -> None:
        self.session.end()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._client.request(
                method, path, headers=self.session.auth_headers(), **kwargs
            )
        except httpx.HTTPError as e:
            LOG.error(f"{method} {path} failed: {e}")
            raise NetworkError(f"{method} {path} failed: {e}") from e

        if response.status_code == 404:
            raise NotFoundError(f"{method} {path}: not found", status_code=404)
        if not response.is_success:
            LOG.error(f"{method} {path} returned HTTP {response.status_code}")
            raise NetworkError(
                f"{method} {path} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise SchemaError(f"{method} {path} returned invalid JSON: {e}") from e
