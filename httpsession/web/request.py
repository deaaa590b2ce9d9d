"""
Request-scoped context passed explicitly to request handling code.

Wraps the CGI/WSGI environ, the decoded request parameters and uploaded
files of one request, carries request attributes, and hands out the request's
session. Nothing here reads process-global state.
"""

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from httpsession.core.exceptions import ParameterFilterError, SessionStateError
from httpsession.web.identity import generate_session_id
from httpsession.web.session import SessionManager, SessionState

logger = logging.getLogger(__name__)

REQUEST_METHOD_GET = "GET"
REQUEST_METHOD_POST = "POST"

SessionFactory = Callable[[str], SessionManager]


class HttpRequest:
    """One HTTP request as seen by application code."""

    def __init__(
        self,
        environ: Optional[Mapping[str, str]] = None,
        parameters: Optional[Mapping[str, Any]] = None,
        files: Optional[Mapping[str, Any]] = None,
        session_id: Optional[str] = None,
        session_factory: Optional[SessionFactory] = None,
        id_generator: Callable[[], str] = generate_session_id,
    ) -> None:
        """
        Args:
            environ: CGI/WSGI variables (QUERY_STRING, REQUEST_URI, ...)
            parameters: Decoded GET/POST parameters; list values for repeated names
            files: Uploaded files by field name
            session_id: Id the client presented, if any
            session_factory: Builds the manager for a session id
            id_generator: Issues ids for new sessions
        """
        self._environ: Dict[str, str] = dict(environ or {})
        self._parameters: Dict[str, Any] = dict(parameters or {})
        self._files: Dict[str, Any] = dict(files or {})
        self._attributes: Dict[str, Any] = {}
        self._requested_session_id = session_id
        self._session_id = session_id
        self._session_factory: SessionFactory = session_factory or SessionManager.from_settings
        self._id_generator = id_generator
        self._session: Optional[SessionManager] = None

    # Request attributes

    def get_attribute(self, name: str, default: Any = None) -> Any:
        return self._attributes.get(name, default)

    def set_attribute(self, name: str, value: Any) -> None:
        self._attributes[name] = value

    def remove_attribute(self, name: str) -> None:
        self._attributes.pop(name, None)

    def get_attribute_names(self) -> List[str]:
        return list(self._attributes)

    # Environment

    def _env(self, key: str) -> Optional[str]:
        return self._environ.get(key)

    def get_query_string(self) -> Optional[str]:
        return self._env("QUERY_STRING")

    def get_request_uri(self) -> Optional[str]:
        return self._env("REQUEST_URI")

    def get_request_url(self) -> Optional[str]:
        return self._env("SCRIPT_NAME")

    def get_server_name(self) -> Optional[str]:
        return self._env("SERVER_NAME")

    def get_server_addr(self) -> Optional[str]:
        return self._env("SERVER_ADDR")

    def get_server_port(self) -> Optional[int]:
        port = self._env("SERVER_PORT")
        return int(port) if port else None

    def get_redirect_url(self) -> Optional[str]:
        return self._env("REDIRECT_URL")

    def get_request_method(self) -> Optional[str]:
        method = self._env("REQUEST_METHOD")
        return method.upper() if method else None

    def get_remote_host(self) -> Optional[str]:
        return self._env("REMOTE_HOST")

    def get_remote_addr(self) -> Optional[str]:
        return self._env("REMOTE_ADDR")

    def get_script_filename(self) -> Optional[str]:
        return self._env("SCRIPT_FILENAME")

    def get_script_name(self) -> Optional[str]:
        return self._env("SCRIPT_NAME")

    def get_user_agent(self) -> Optional[str]:
        return self._env("HTTP_USER_AGENT")

    def get_referer(self) -> Optional[str]:
        return self._env("HTTP_REFERER")

    # Parameters

    def get_parameter(
        self, name: str, converter: Optional[Callable[[Any], Any]] = None
    ) -> Any:
        """
        Return a single-valued request parameter.

        Args:
            name: Parameter name
            converter: Optional callable applied to non-empty values, e.g. ``int``

        Returns:
            The (converted) value, or None when missing or multi-valued

        Raises:
            ParameterFilterError: If the converter rejects the value
        """
        value = self._parameters.get(name)
        if value is None or isinstance(value, (list, tuple)):
            return None
        if converter is None or value == "":
            return value
        try:
            return converter(value)
        except (TypeError, ValueError) as e:
            raise ParameterFilterError(name, value, str(e)) from e

    def get_parameter_map(self) -> Dict[str, Any]:
        return dict(self._parameters)

    def get_parameter_names(self) -> List[str]:
        return list(self._parameters)

    def get_parameter_values(self, name: str) -> Optional[Any]:
        """Return a multi-valued parameter, falling back to an uploaded file"""
        value = self._parameters.get(name)
        if isinstance(value, (list, tuple)):
            return list(value)
        return self._files.get(name)

    # Session

    def get_requested_session_id(self) -> Optional[str]:
        """The id the client presented with this request"""
        return self._requested_session_id

    @property
    def session_id(self) -> Optional[str]:
        """Id of the request's current session, for the transport layer to send back"""
        return self._session_id

    def get_session(self, create: bool = True) -> Optional[SessionManager]:
        """
        Return the request's session.

        The manager is created on the first call. After the session was
        invalidated a new id is issued and a fresh session is created.

        Args:
            create: Create a session when none is usable; otherwise return None

        Raises:
            SessionStateError: If the session was already closed
        """
        session = self._session
        if session is not None and session.state in (SessionState.UNINITIALIZED, SessionState.ACTIVE):
            return session
        if session is not None and session.state is SessionState.CLOSED:
            raise SessionStateError("The request's session is already closed")
        if not create:
            return None

        if session is not None:
            session.close()
            self._session_id = None

        if not self._session_id:
            self._session_id = self._id_generator()
        self._session = self._session_factory(self._session_id)
        return self._session

    def close(self) -> None:
        """Close the session, writing its attributes back to the store"""
        if self._session is not None:
            self._session.close()

    def __enter__(self) -> "HttpRequest":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()
