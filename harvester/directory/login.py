"""
Login state machine for the directory site.

Drives the multi-step handshake:
1. GET the directory entry page and expect a redirect
2. GET the login page and scrape the anti-forgery token
3. POST the credentials form
4. Verify the auth cookie and the post-login redirect
5. GET the redirect target and confirm the 'Log Off' affordance

Any failure moves the machine to ERROR and raises.
"""

from enum import Enum
from typing import Callable, Optional
from urllib.parse import urljoin

from harvester.config.credentials import LoginCredentials
from harvester.exceptions import HarvesterError, ProtocolShapeError
from harvester.logging import StructuredLogger
from harvester.transport import RateLimitedTransport
from .constants import (
    DIRECTORY_INDEX_URL, LOGIN_PAGE_URL, LOGIN_POST_URL, LOGIN_RETURN_URL,
    ADVANCED_SEARCH_URL, SITE_ORIGIN, RETURN_URL_PARAM, AUTH_COOKIE_NAME,
    TOKEN_FIELD, USERNAME_FIELD, PASSWORD_FIELD, SUBMIT_FIELD, SUBMIT_VALUE,
    DIRECTORY_HEADERS
)
from .parsers import make_soup, find_request_token, find_validation_errors, has_log_off_link
from .session_store import SessionStore


class LoginState(str, Enum):
    UNAUTHENTICATED = 'unauthenticated'
    INITIAL_REDIRECT = 'initial_redirect'
    LOGIN_FORM_LOADED = 'login_form_loaded'
    CREDENTIALS_SUBMITTED = 'credentials_submitted'
    REDIRECT_VERIFIED = 'redirect_verified'
    AUTHENTICATED = 'authenticated'
    ERROR = 'error'


class LoginStateMachine:
    """Authenticate against the directory and check session validity."""

    def __init__(
        self,
        transport: RateLimitedTransport,
        session_store: SessionStore,
        credentials: Optional[LoginCredentials] = None
    ):
        """
        Initialize login state machine.

        Args:
            transport: Shared rate-limited transport
            session_store: Store used to persist the session after login
            credentials: Username/password; only needed for login()
        """
        self.transport = transport
        self.session_store = session_store
        self.credentials = credentials
        self.state = LoginState.UNAUTHENTICATED
        self.error: Optional[HarvesterError] = None
        self.logger = StructuredLogger("login")

    def _transition(self, state: LoginState, **details):
        self.logger.debug("Login state changed", {"from": self.state.value, "to": state.value, **details})
        self.state = state

    def _fail(self, message: str, stage: LoginState, **details) -> ProtocolShapeError:
        return ProtocolShapeError(message, stage=stage.value, details=details or None)

    def login(self) -> LoginState:
        """
        Run the full handshake.

        Returns:
            LoginState.AUTHENTICATED

        Raises:
            ProtocolShapeError: The site did not behave as expected at some step
            TransportError: A request failed at the network level
        """
        if self.credentials is None:
            raise ValueError("Login requires credentials")
        self.logger.add_context("username", self.credentials.username)

        self.state = LoginState.UNAUTHENTICATED
        self.error = None
        try:
            self._request_initial_redirect()
            token = self._load_login_form()
            response = self._submit_credentials(token)
            location = self._verify_redirect(response)
            self._verify_authenticated(location)
        except HarvesterError as e:
            self.error = e
            self._transition(LoginState.ERROR, error=str(e))
            raise

        self.logger.info("Login successful", {"username": self.credentials.username})
        self.session_store.save()
        return self.state

    def _request_initial_redirect(self):
        response = self.transport.get(DIRECTORY_INDEX_URL, headers=DIRECTORY_HEADERS)
        if not 300 <= response.status_code < 400:
            raise self._fail(
                "Bad request (no initial redirect)",
                LoginState.UNAUTHENTICATED,
                status_code=response.status_code
            )
        self._transition(LoginState.INITIAL_REDIRECT, location=response.headers.get('Location', ''))

    def _load_login_form(self) -> str:
        response = self.transport.get(
            LOGIN_PAGE_URL,
            params={RETURN_URL_PARAM: LOGIN_RETURN_URL},
            headers=DIRECTORY_HEADERS
        )
        token = find_request_token(make_soup(response.text))
        if token:
            self.logger.debug("Token captured", {"status_code": response.status_code})
        else:
            # The server rejects an empty token, so the failure shows up one step later
            self.logger.warning("Request verification token not found", {"status_code": response.status_code})
        self._transition(LoginState.LOGIN_FORM_LOADED, token_found=bool(token))
        return token

    def _submit_credentials(self, token: str):
        form = {
            TOKEN_FIELD: token,
            USERNAME_FIELD: self.credentials.username,
            PASSWORD_FIELD: self.credentials.password,
            SUBMIT_FIELD: SUBMIT_VALUE,
        }
        headers = dict(DIRECTORY_HEADERS)
        headers['Content-Type'] = 'application/x-www-form-urlencoded'
        response = self.transport.post(LOGIN_POST_URL, data=form, headers=headers)

        if response.status_code == 500:
            raise self._fail(
                "Bad credentials or cookie state",
                LoginState.LOGIN_FORM_LOADED,
                status_code=500
            )
        if response.status_code not in (200, 302):
            raise self._fail(
                "Unknown login response",
                LoginState.LOGIN_FORM_LOADED,
                status_code=response.status_code
            )
        self._transition(LoginState.CREDENTIALS_SUBMITTED, status_code=response.status_code)
        return response

    def _verify_redirect(self, response) -> str:
        set_cookie = response.headers.get('Set-Cookie', '')
        if AUTH_COOKIE_NAME not in set_cookie:
            raise self._fail("Login rejected: auth cookie not set", LoginState.CREDENTIALS_SUBMITTED)
        self.logger.info("Auth cookie found", {"name": AUTH_COOKIE_NAME})

        location = response.headers.get('Location', '')
        if not location:
            raise self._fail("Login failed: no post-login redirect", LoginState.CREDENTIALS_SUBMITTED)

        self._transition(LoginState.REDIRECT_VERIFIED, location=location)
        return location

    def _verify_authenticated(self, location: str):
        response = self.transport.get(urljoin(SITE_ORIGIN, location), headers=DIRECTORY_HEADERS)
        if response.status_code != 200:
            raise self._fail(
                "Non-200 status after login attempt",
                LoginState.REDIRECT_VERIFIED,
                status_code=response.status_code
            )

        soup = make_soup(response.text)
        errors = find_validation_errors(soup)
        if errors:
            self.logger.debug("Validation errors found", {"count": len(errors), "errors": errors})
            raise self._fail(f"Validation error: {errors[0]}", LoginState.REDIRECT_VERIFIED)

        if not has_log_off_link(soup):
            raise self._fail("Login failed: could not find log off element", LoginState.REDIRECT_VERIFIED)

        self._transition(LoginState.AUTHENTICATED)

    def check_logged_in(self) -> bool:
        """
        Cheap check of the restored session.

        No auth cookie means not logged in without touching the network.
        Otherwise an authenticated-only page answers: 302 means the session
        expired, 200 means still logged in.

        Raises:
            ProtocolShapeError: Any other status code
        """
        if not self.session_store.has_auth_cookie():
            return False

        response = self.transport.get(ADVANCED_SEARCH_URL, headers=DIRECTORY_HEADERS)
        if response.status_code == 302:
            self.logger.info("Session expired", {"location": response.headers.get('Location', '')})
            return False
        if response.status_code != 200:
            raise ProtocolShapeError(
                "Unexpected login check response code",
                stage="check_logged_in",
                details={"status_code": response.status_code}
            )

        if not has_log_off_link(make_soup(response.text)):
            self.logger.warning("Logged in but log off element missing", {})
        self.state = LoginState.AUTHENTICATED
        return True

    def ensure_logged_in(self, credentials_provider: Optional[Callable[[], LoginCredentials]] = None) -> bool:
        """
        Reuse the restored session if still valid, otherwise log in.

        Args:
            credentials_provider: Called for credentials when a login is
                needed and none were given

        Returns:
            True if a fresh login was performed
        """
        if self.check_logged_in():
            self.logger.debug("Restored session is valid", {})
            return False
        if self.credentials is None and credentials_provider is not None:
            self.credentials = credentials_provider()
        self.login()
        return True
