"""
============================================================================
ICU HEALTH MONITOR - PROBE EXECUTOR
============================================================================
Performs one end-to-end reachability check against a target URL.

Architecture
------------
ProbeExecutor.check(url)          ← never raises, always a CheckResult
└── asyncio.wait_for(deadline)    ← one deadline shared by every attempt
    └── _attempt_variants()       ← default path, then IPv4-forced path
        └── _attempt_methods()    ← HEAD, then GET on "not supported"
            └── StatusClassifier  ← accepted codes and ranges

A status in the fallback set (405, 501 by default) moves on to the next
method unless the method just tried was the last one. Any other status
is final. An exception before a status was obtained abandons the
current network path and retries the whole method sequence on the next.

Author: Professional Development Team
Version: 1.0.0
License: MIT
============================================================================
"""

import asyncio
import errno
import socket
import ssl
from typing import Callable, Dict, List, Optional, Tuple
from urllib.parse import urlparse

import httpx

from config.settings import HealthCheckSettings
from monitoring.classifier import StatusClassifier
from monitoring.models import CheckResult
from utils.helpers import StringHelper, TimeHelper
from utils.logger import get_logger


logger = get_logger("ProbeExecutor")

# Builds the transport for a network path; the flag is True for IPv4-forced
TransportFactory = Callable[[bool], httpx.AsyncBaseTransport]

# getaddrinfo failures carry negative EAI_* codes that errno does not know
_EAI_NAMES: Dict[int, str] = {
    getattr(socket, name): name
    for name in dir(socket)
    if name.startswith("EAI_") and isinstance(getattr(socket, name), int)
}


# ============================================================================
# ERROR DESCRIPTION
# ============================================================================

def _root_cause(error: BaseException) -> BaseException:
    """Follow the cause/context chain down to the lowest-level exception."""
    seen = set()
    current = error
    while id(current) not in seen:
        seen.add(id(current))
        nested = current.__cause__ or current.__context__
        if nested is None:
            break
        current = nested
    return current


def _error_code(root: BaseException) -> Optional[str]:
    code = getattr(root, "errno", None)
    if not isinstance(code, int):
        return None
    if isinstance(root, socket.gaierror):
        return _EAI_NAMES.get(code, str(code))
    return errno.errorcode.get(code, str(code))


def _syscall(error: BaseException, root: BaseException) -> Optional[str]:
    if isinstance(root, socket.gaierror):
        return "getaddrinfo"
    if isinstance(root, ssl.SSLError):
        return "handshake"
    if isinstance(error, httpx.ConnectError) or isinstance(root, ConnectionRefusedError):
        return "connect"
    if isinstance(error, httpx.ReadError):
        return "read"
    if isinstance(error, httpx.WriteError):
        return "write"
    return None


def describe_error(error: BaseException, url: str) -> str:
    """
    Render a transport exception as a structured diagnostic string.

    Includes the exception class, the low-level error code, the failing
    syscall, and the target host/port when they can be determined.

    Example:
        ``ConnectError: [Errno 111] Connection refused (code=ECONNREFUSED,
        syscall=connect, host=example.com, port=443)``
    """
    root = _root_cause(error)
    message = str(error) or str(root) or type(root).__name__

    details: List[str] = []
    code = _error_code(root)
    if code:
        details.append(f"code={code}")
    syscall = _syscall(error, root)
    if syscall:
        details.append(f"syscall={syscall}")

    parsed = urlparse(url)
    if parsed.hostname:
        details.append(f"host={parsed.hostname}")
    address = getattr(root, "address", None) or getattr(root, "host", None)
    if isinstance(address, str) and address != parsed.hostname:
        details.append(f"address={address}")
    try:
        port = parsed.port or {"http": 80, "https": 443}.get(parsed.scheme)
    except ValueError:
        port = None
    if port:
        details.append(f"port={port}")

    description = f"{type(error).__name__}: {StringHelper.truncate(message, 300)}"
    if details:
        description += f" ({', '.join(details)})"
    return description


# ============================================================================
# PROBE EXECUTOR
# ============================================================================

class ProbeExecutor:
    """
    Async HTTP probe with method fallback, network-path retry and a
    single overall deadline.

    The executor keeps one pooled ``httpx.AsyncClient`` per network path
    and must be closed with :meth:`close` on shutdown.
    """

    def __init__(
        self,
        settings: HealthCheckSettings,
        classifier: Optional[StatusClassifier] = None,
        transport_factory: Optional[TransportFactory] = None,
    ):
        self.settings = settings
        self.classifier = classifier or StatusClassifier(*settings.status_policy)
        self.methods: Tuple[str, ...] = settings.methods
        self.fallback_statuses = settings.fallback_statuses
        self.headers = settings.request_headers
        self.timeout_ms = settings.timeout_ms
        self.debug = bool(settings.debug)

        self._transport_factory = transport_factory or self._default_transport
        self._clients: Dict[bool, httpx.AsyncClient] = {}

        logger.info(
            f"ProbeExecutor created — methods={','.join(self.methods)}, "
            f"fallback={sorted(self.fallback_statuses)}, "
            f"timeout={self.timeout_ms}ms, ipv4_first={settings.use_ipv4_first}, "
            f"policy={self.classifier!r}"
        )

    # ------------------------------------------------------------------
    # PUBLIC API
    # ------------------------------------------------------------------

    async def check(self, url: str) -> CheckResult:
        """
        Probe *url* once.

        Parameters
        ----------
        url : str
            Absolute http(s) URL.

        Returns
        -------
        CheckResult
            Never raises; timeouts and transport errors become an
            unsuccessful result with ``status_code=None``.
        """
        start_ms = TimeHelper.monotonic_ms()

        try:
            return await asyncio.wait_for(
                self._attempt_variants(url, start_ms),
                timeout=self.timeout_ms / 1000.0,
            )
        except asyncio.TimeoutError:
            if self.debug:
                logger.debug(f"[Probe] {url} timed out after {self.timeout_ms}ms")
            return CheckResult(
                status_code=None,
                response_time_ms=TimeHelper.elapsed_ms(start_ms),
                is_success=False,
                error=f"Request timed out after {self.timeout_ms}ms",
            )
        except Exception as e:
            logger.error(f"[Probe] Unexpected error probing {url}: {e}")
            return CheckResult(
                status_code=None,
                response_time_ms=TimeHelper.elapsed_ms(start_ms),
                is_success=False,
                error=describe_error(e, url),
            )

    async def close(self) -> None:
        """Close every pooled client."""
        clients = list(self._clients.values())
        self._clients.clear()
        for client in clients:
            await client.aclose()
        logger.debug("[Probe] HTTP clients closed")

    # ------------------------------------------------------------------
    # ATTEMPTS
    # ------------------------------------------------------------------

    def _network_paths(self) -> Tuple[bool, bool]:
        if self.settings.use_ipv4_first:
            return (True, False)
        return (False, True)

    async def _attempt_variants(self, url: str, start_ms: float) -> CheckResult:
        last_error: Optional[BaseException] = None

        for ipv4 in self._network_paths():
            path = "ipv4" if ipv4 else "default"
            try:
                return await self._attempt_methods(self._client(ipv4), url, start_ms)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                last_error = e
                if self.debug:
                    logger.debug(
                        f"[Probe] {url} failed on {path} network path: "
                        f"{type(e).__name__}: {e}"
                    )

        assert last_error is not None
        error = describe_error(last_error, url)
        if self.debug:
            logger.debug(f"[Probe] {url} unreachable on all network paths — {error}")

        return CheckResult(
            status_code=None,
            response_time_ms=TimeHelper.elapsed_ms(start_ms),
            is_success=False,
            error=error,
        )

    async def _attempt_methods(
        self,
        client: httpx.AsyncClient,
        url: str,
        start_ms: float,
    ) -> CheckResult:
        """
        Run the method sequence on one network path.

        Raises whatever the transport raises; the caller decides whether
        another path is worth trying.
        """
        last_index = len(self.methods) - 1

        for index, method in enumerate(self.methods):
            # Only the status line matters; the body is never read
            async with client.stream(method, url, headers=self.headers) as response:
                status_code = response.status_code

            elapsed = TimeHelper.elapsed_ms(start_ms)

            if self.classifier.classify(status_code):
                if self.debug:
                    logger.debug(f"[Probe] {method} {url} → {status_code} in {elapsed}ms")
                return CheckResult(
                    status_code=status_code,
                    response_time_ms=elapsed,
                    is_success=True,
                )

            if status_code in self.fallback_statuses and index < last_index:
                if self.debug:
                    logger.debug(
                        f"[Probe] {method} {url} → {status_code}, "
                        f"falling back to {self.methods[index + 1]}"
                    )
                continue

            if self.debug:
                logger.debug(f"[Probe] {method} {url} → {status_code} (unsuccessful)")
            return CheckResult(
                status_code=status_code,
                response_time_ms=elapsed,
                is_success=False,
            )

        # Unreachable: the last method always returns above
        raise RuntimeError("method order is empty")

    # ------------------------------------------------------------------
    # CLIENTS
    # ------------------------------------------------------------------

    def _default_transport(self, ipv4: bool) -> httpx.AsyncBaseTransport:
        # Binding to the IPv4 wildcard restricts the socket to AF_INET
        return httpx.AsyncHTTPTransport(
            verify=self.settings.verify_ssl,
            local_address="0.0.0.0" if ipv4 else None,
            limits=httpx.Limits(
                max_connections=self.settings.max_concurrent_probes,
                max_keepalive_connections=self.settings.max_concurrent_probes,
            ),
        )

    def _client(self, ipv4: bool) -> httpx.AsyncClient:
        client = self._clients.get(ipv4)
        if client is None:
            # The overall deadline is enforced by wait_for, not per request
            client = httpx.AsyncClient(
                transport=self._transport_factory(ipv4),
                follow_redirects=True,
                max_redirects=self.settings.max_redirects,
                timeout=httpx.Timeout(None),
            )
            self._clients[ipv4] = client
        return client
