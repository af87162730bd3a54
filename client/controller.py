"""
ConnectionController — per-activation state machine for the workspace connection.

One controller instance corresponds to one activation of the consuming view.
``start()`` does everything that must happen synchronously (read the session
credential, decode the identity, strip the authorization code from the URL)
and then schedules a single settle task that either exchanges the code or
checks the persisted status, while the full identity is fetched alongside.

Two flags on the ``ActivationToken`` guard it:

* ``processed`` — the exchange transition has fired; further calls are no-ops.
* ``alive``     — cleared by ``teardown()``; every continuation checks it and a
  torn-down activation never publishes state again.

Cross-activation duplicates (another tab, a second view) are rejected by the
server's exchanged-code ledger.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, List, Optional

from client.api import ConnectApiClient
from client.errors import ConnectApiError
from client.location import Location, Navigator
from client.session import CredentialStore, decode_identity

logger = logging.getLogger(__name__)

GENERIC_CONNECT_ERROR = "Failed to connect to the workspace. Please try again."
GENERIC_DISCONNECT_ERROR = "Failed to disconnect the workspace. Please try again."
NO_RESPONSE_ERROR = "No response received from server. Please check your connection."


class ConnectionPhase(str, Enum):
    INIT = "init"
    UNAUTHENTICATED = "unauthenticated"
    EXCHANGING = "exchanging"
    CHECKING_STATUS = "checking_status"
    READY = "ready"


class ConnectionSource(str, Enum):
    """Where the current connection value came from."""

    INITIAL = "initial"      # placeholder before anything was learned
    EXCHANGE = "exchange"    # optimistic result of this activation's code exchange
    STATUS = "status"        # authoritative answer from the status endpoint
    MANUAL = "manual"        # applied by the view through set_connection()


@dataclass(frozen=True)
class UserInfo:
    email: str
    display_name: Optional[str] = None
    user_id: Optional[str] = None


@dataclass(frozen=True)
class WorkspaceConnectionState:
    email: str = ""
    is_connected: bool = False
    source: ConnectionSource = ConnectionSource.INITIAL


@dataclass(frozen=True)
class ViewState:
    user_info: Optional[UserInfo] = None
    connection: WorkspaceConnectionState = field(default_factory=WorkspaceConnectionState)
    is_connecting: bool = False
    error: str = ""
    is_loading: bool = True
    phase: ConnectionPhase = ConnectionPhase.INIT


@dataclass
class ActivationToken:
    processed: bool = False
    alive: bool = True


Listener = Callable[[ViewState], None]


def describe_failure(exc: ConnectApiError, fallback: str = GENERIC_CONNECT_ERROR) -> str:
    """Most specific human-readable message available for a failed call."""
    for candidate in (exc.description, exc.error, exc.transport_message):
        if candidate:
            return candidate
    return fallback


def describe_identity_failure(exc: ConnectApiError) -> str:
    if exc.has_response:
        return f"Authentication Error: {exc.description or exc.error or exc.transport_message}"
    if exc.transport_message:
        return NO_RESPONSE_ERROR
    return "An unexpected error occurred"


class ConnectionController:
    def __init__(
        self,
        api: ConnectApiClient,
        credentials: CredentialStore,
        location: Location,
        navigator: Navigator,
        *,
        code_param: str = "code",
    ) -> None:
        self._api = api
        self._credentials = credentials
        self._location = location
        self._navigator = navigator
        self._code_param = code_param

        self._state = ViewState()
        self._token = ActivationToken()
        self._listeners: List[Listener] = []
        self._credential: Optional[str] = None
        self._started = False
        self._task: Optional[asyncio.Task] = None

    # ── read-only view ──────────────────────────────────────────────────

    @property
    def state(self) -> ViewState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._token.alive

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call *listener* with every published state; returns an unsubscribe."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ── lifecycle ───────────────────────────────────────────────────────

    def start(self) -> Optional[asyncio.Task]:
        """
        Run the synchronous part of activation and schedule the settle task.

        Safe to call repeatedly: later calls return the task from the first.
        Returns ``None`` when there is no session credential (login redirect).
        Must be called from within a running event loop.
        """
        if self._started:
            return self._task
        self._started = True

        credential = self._credentials.load()
        if not credential:
            logger.info("No session credential; signalling login redirect")
            self._publish(phase=ConnectionPhase.UNAUTHENTICATED, is_loading=False)
            self._navigator.redirect_to_login()
            return None
        self._credential = credential

        claims = decode_identity(credential)
        email = claims.get("email") if claims else None
        if isinstance(email, str) and email:
            user_id = claims.get("user_id")
            self._publish(user_info=UserInfo(email=email, user_id=str(user_id) if user_id else None))

        # Strip everything the provider appended before any await.
        code = self._location.pop_query_param(self._code_param)
        provider_error = self._location.pop_query_param("error")
        provider_error_description = self._location.pop_query_param("error_description")
        self._location.pop_query_param("state")

        if provider_error and not code:
            logger.warning("Provider redirected with error: %s", provider_error)
            self._publish(error=provider_error_description or provider_error)

        if code:
            self._publish(phase=ConnectionPhase.EXCHANGING)
        else:
            self._publish(phase=ConnectionPhase.CHECKING_STATUS)

        self._task = asyncio.get_running_loop().create_task(self._settle(credential, code))
        return self._task

    async def activate(self) -> ViewState:
        """``start()`` and wait for the activation to settle."""
        task = self.start()
        if task is not None:
            await task
        return self._state

    def teardown(self) -> None:
        """Mark the activation dead; pending results will be dropped, not applied."""
        if not self._token.alive:
            return
        self._token.alive = False
        # No listener is told: the view is gone.
        self._state = replace(self._state, is_connecting=False)
        logger.debug("Activation torn down")

    # ── mutators for the view ───────────────────────────────────────────

    def set_connection(self, connection: WorkspaceConnectionState) -> None:
        self._publish(connection=replace(connection, source=ConnectionSource.MANUAL))

    async def disconnect(self) -> bool:
        """Disconnect the workspace for the current identity; True on success."""
        if not self._credential:
            return False
        email = self._state.user_info.email if self._state.user_info else None
        try:
            result = await self._api.disconnect(self._credential, email=email)
        except ConnectApiError as exc:
            logger.error("Workspace disconnect failed: %s", exc)
            self._publish(error=describe_failure(exc, GENERIC_DISCONNECT_ERROR))
            return False

        if not result.success:
            logger.error("Workspace disconnect refused: %s", result.error)
            self._publish(error=result.error or GENERIC_DISCONNECT_ERROR)
            return False

        self.set_connection(WorkspaceConnectionState())
        return True

    # ── internals ───────────────────────────────────────────────────────

    def _publish(self, **changes: Any) -> None:
        if not self._token.alive:
            logger.debug("Dropping state update after teardown: %s", sorted(changes))
            return
        self._state = replace(self._state, **changes)
        for listener in list(self._listeners):
            listener(self._state)

    def _discarded(self, what: str) -> bool:
        if self._token.alive:
            return False
        logger.debug("Discarding %s result for torn-down activation", what)
        return True

    def _known_email(self) -> str:
        return self._state.user_info.email if self._state.user_info else ""

    async def _settle(self, credential: str, code: Optional[str]) -> None:
        if code:
            reconcile = self._exchange(code, credential)
        else:
            reconcile = self._check_status(credential)
        await asyncio.gather(reconcile, self._resolve_identity(credential))
        self._publish(is_loading=False)

    async def _exchange(self, code: str, credential: str) -> None:
        if self._token.processed:
            logger.debug("Exchange already dispatched for this activation")
            return
        self._token.processed = True

        self._publish(is_connecting=True)
        try:
            result = await self._api.exchange_code(code, credential)
        except ConnectApiError as exc:
            if self._discarded("exchange"):
                return
            logger.warning("Workspace code exchange failed: %s", exc)
            self._publish(
                connection=WorkspaceConnectionState(source=ConnectionSource.EXCHANGE),
                error=describe_failure(exc),
                is_connecting=False,
                phase=ConnectionPhase.READY,
            )
            return

        if self._discarded("exchange"):
            return

        if result.success:
            logger.info("Workspace connected: %s", result.workspace_reference)
            self._publish(
                connection=WorkspaceConnectionState(
                    email=result.workspace_reference or self._known_email(),
                    is_connected=True,
                    source=ConnectionSource.EXCHANGE,
                ),
                error="",
                is_connecting=False,
                phase=ConnectionPhase.READY,
            )
        else:
            logger.warning("Workspace code exchange rejected: %s", result.error)
            self._publish(
                connection=WorkspaceConnectionState(source=ConnectionSource.EXCHANGE),
                error=result.error or result.error_description or GENERIC_CONNECT_ERROR,
                is_connecting=False,
                phase=ConnectionPhase.READY,
            )

    async def _check_status(self, credential: str) -> None:
        try:
            result = await self._api.check_status(credential)
        except ConnectApiError as exc:
            if self._discarded("status"):
                return
            # Unreachable status endpoint is not an explicit disconnect: no banner.
            logger.warning("Connection status check failed; treating as not connected: %s", exc)
            self._publish(
                connection=WorkspaceConnectionState(source=ConnectionSource.STATUS),
                phase=ConnectionPhase.READY,
            )
            return

        if self._discarded("status"):
            return

        if result.success and result.connected:
            connection = WorkspaceConnectionState(
                email=self._known_email(),
                is_connected=True,
                source=ConnectionSource.STATUS,
            )
        else:
            connection = WorkspaceConnectionState(source=ConnectionSource.STATUS)
        self._publish(connection=connection, phase=ConnectionPhase.READY)

    async def _resolve_identity(self, credential: str) -> None:
        try:
            info = await self._api.fetch_identity(credential)
        except ConnectApiError as exc:
            if self._discarded("identity"):
                return
            self._identity_unavailable(describe_identity_failure(exc), exc)
            return

        if self._discarded("identity"):
            return

        if not info.email:
            self._identity_unavailable("Authentication Error: identity has no email", None)
            return

        changes: dict = {
            "user_info": UserInfo(
                email=info.email,
                display_name=info.display_name,
                user_id=info.user_id,
            )
        }
        connection = self._state.connection
        if connection.is_connected and not connection.email and connection.source is ConnectionSource.STATUS:
            changes["connection"] = replace(connection, email=info.email)
        self._publish(**changes)

    def _identity_unavailable(self, message: str, exc: Optional[ConnectApiError]) -> None:
        if self._known_email():
            logger.warning("Full identity fetch failed; keeping identity from credential: %s", exc)
            return
        logger.error("No identity could be established: %s", message)
        self._publish(error=message)
        self._navigator.redirect_to_login()
