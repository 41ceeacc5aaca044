"""Bounded-retry connection attempts with failure classification.

One :meth:`ConnectionAttemptMachine.connect` call drives a single
user-initiated connect through these states::

    AWAITING_CREDENTIAL -> ATTEMPTING -> SUCCEEDED
                               |  ^
              wrong password   v  |  new password
                    WRONG_CREDENTIAL_RETRY -> ABANDONED (prompt cancelled)
                               |
                               v
            FAILED  (ceiling reached, TIMED_OUT, or any other failure)

Only a wrong credential is retried, and only up to ``max_retry``
attempts.  Timeouts and other failures end the operation after one
attempt.  Saved profiles go through :meth:`bring_up_saved`, which never
prompts: a new password cannot be supplied without forgetting the
profile first.
"""

from __future__ import annotations

import enum
import logging
from typing import Callable, Protocol

from rofiwifi.display.notify import Notifier
from rofiwifi.wifi_common import ConnectOutcome, ConnectResult, NetworkError

logger = logging.getLogger(__name__)

CredentialPrompt = Callable[[str], "str | None"]


class AttemptState(enum.Enum):
    AWAITING_CREDENTIAL = "awaiting_credential"
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    WRONG_CREDENTIAL_RETRY = "wrong_credential_retry"
    TIMED_OUT = "timed_out"
    FAILED = "failed"
    ABANDONED = "abandoned"


TERMINAL_STATES = frozenset({AttemptState.SUCCEEDED, AttemptState.FAILED, AttemptState.ABANDONED})


class NetworkClient(Protocol):
    """The subset of :class:`~rofiwifi.connection.nmcli.NmcliClient` used here."""

    def connect_new(self, ssid: str, password: str | None) -> ConnectResult: ...  # pragma: no cover

    def connect_saved(self, ssid: str) -> bool: ...  # pragma: no cover

    def get_ip(self) -> str | None: ...  # pragma: no cover

    def ping_check(self, host: str, count: int) -> tuple[bool, float | None]: ...  # pragma: no cover

    def connection_up(self, name: str) -> None: ...  # pragma: no cover


class ConnectionAttemptMachine:
    """Drive connection attempts against one target network at a time.

    Args:
        client: Performs the external connect, IP lookup, and ping.
        prompt: Asks for a password; receives a hint such as
            ``"attempt 2"`` and returns None or "" on cancel.
        notifier: Receives progress and failure notifications.
        max_retry: Attempt ceiling for wrong-credential retries.
        ping_host: Reachability probe target after connecting.
        ping_count: Echo requests for the probe.
        auto_vpn: ``(vpn_profile, trigger_ssid)`` pairs started after a
            successful connect to the trigger SSID.
    """

    def __init__(
        self,
        client: NetworkClient,
        prompt: CredentialPrompt,
        notifier: Notifier,
        *,
        max_retry: int = 3,
        ping_host: str = "1.1.1.1",
        ping_count: int = 2,
        auto_vpn: list[tuple[str, str]] | tuple[tuple[str, str], ...] = (),
    ) -> None:
        self._client = client
        self._prompt = prompt
        self._notifier = notifier
        self.max_retry = max(1, max_retry)
        self._ping_host = ping_host
        self._ping_count = ping_count
        self._auto_vpn = list(auto_vpn)
        self.state: AttemptState | None = None
        self.attempt = 0
        self.history: list[AttemptState] = []
        self.last_result: ConnectResult | None = None

    def _reset(self) -> None:
        self.state = None
        self.attempt = 0
        self.history = []
        self.last_result = None

    def _enter(self, state: AttemptState) -> AttemptState:
        logger.debug("connect: %s -> %s (attempt %d)", self.state, state, self.attempt)
        self.state = state
        self.history.append(state)
        if state in TERMINAL_STATES:
            logger.info("connect finished: %s after %d attempt(s)", state.value, self.attempt)
        return state

    # -- new networks -----------------------------------------------------

    def connect(
        self,
        ssid: str,
        credential: str | None = None,
        *,
        requires_credential: bool = False,
    ) -> AttemptState:
        """Connect to *ssid*, retrying on wrong credentials.

        Returns:
            The terminal state: SUCCEEDED, FAILED, or ABANDONED.
        """
        self._reset()
        self.attempt = 1

        if requires_credential and not credential:
            self._enter(AttemptState.AWAITING_CREDENTIAL)
            credential = self._prompt("")
            if not credential:
                return self._enter(AttemptState.ABANDONED)

        while True:
            self._enter(AttemptState.ATTEMPTING)
            self._notifier.normal("Connecting…", f"{ssid} ({self.attempt}/{self.max_retry})")
            result = self._client.connect_new(ssid, credential or None)
            self.last_result = result
            logger.info("connect %s attempt %d: %s", ssid, self.attempt, result.outcome.value)

            if result.outcome is ConnectOutcome.SUCCESS:
                self._after_connect(ssid, result.ip or "unknown")
                return self._enter(AttemptState.SUCCEEDED)

            if result.outcome is ConnectOutcome.TIMEOUT:
                self._enter(AttemptState.TIMED_OUT)
                self._notifier.critical(
                    "Connection timed out",
                    f"{ssid} did not respond in time; check the signal strength",
                )
                return self._enter(AttemptState.FAILED)

            if result.outcome is ConnectOutcome.FAILED:
                self._notifier.critical("Connection failed", result.message or ssid)
                return self._enter(AttemptState.FAILED)

            # WRONG_CREDENTIAL
            if self.attempt >= self.max_retry:
                self._notifier.critical(
                    "Connection failed",
                    f"Password rejected {self.attempt} times for {ssid}; giving up",
                )
                return self._enter(AttemptState.FAILED)

            self._enter(AttemptState.WRONG_CREDENTIAL_RETRY)
            self._notifier.critical(
                "Wrong password",
                f"Attempt {self.attempt} of {self.max_retry} failed, please retry",
            )
            credential = self._prompt(f"attempt {self.attempt + 1}")
            if not credential:
                self._notifier.low("Cancelled", f"Gave up connecting to {ssid}")
                return self._enter(AttemptState.ABANDONED)
            self.attempt += 1

    # -- saved profiles ---------------------------------------------------

    def bring_up_saved(self, ssid: str) -> AttemptState:
        """Activate the saved profile for *ssid*; one attempt, no prompt."""
        self._reset()
        self.attempt = 1
        self._enter(AttemptState.ATTEMPTING)
        self._notifier.normal("Connecting…", ssid)
        if not self._client.connect_saved(ssid):
            self._notifier.critical("Connection failed", f"Could not activate saved profile {ssid}")
            return self._enter(AttemptState.FAILED)
        self._after_connect(ssid, self._client.get_ip() or "unknown")
        return self._enter(AttemptState.SUCCEEDED)

    # -- post-connect -----------------------------------------------------

    def _after_connect(self, ssid: str, ip: str) -> None:
        self._notifier.normal("Connected ✓", f"{ssid}\nIP: {ip}")
        reachable, latency = self._client.ping_check(self._ping_host, self._ping_count)
        if reachable:
            detail = f"{latency:.0f} ms to {self._ping_host}" if latency is not None else self._ping_host
            self._notifier.low("Internet reachable", detail)
        else:
            self._notifier.normal(
                "No internet access",
                f"Connected to {ssid} but {self._ping_host} is unreachable",
            )
        self._start_auto_vpn(ssid)

    def _start_auto_vpn(self, ssid: str) -> None:
        for vpn, trigger in self._auto_vpn:
            if trigger != ssid:
                continue
            self._notifier.low("VPN", f"Starting {vpn}…")
            try:
                self._client.connection_up(vpn)
            except NetworkError as exc:
                logger.warning("auto VPN %s failed: %s", vpn, exc)
                self._notifier.critical("VPN failed", f"Could not start {vpn}")
                continue
            self._notifier.normal("VPN connected", vpn)
