"""
============================================================================
ICU HEALTH MONITOR - NOTIFICATION CHANNELS
============================================================================
One adapter per provider, each a single HTTP request with a
provider-specific payload:

    telegram  POST {api_base}/bot{bot_token}/sendMessage  {chat_id, text}
    slack     POST {webhook_url}                          {text}
    discord   POST {webhook_url}                          {content}
    webhook   {method} {webhook_url} + headers            {message, url, statusCode, responseTimeMs}

Adapters raise ``NotificationException`` subclasses; ``NotifierDispatch``
turns those into a boolean outcome and a log line so one failing channel
never affects another.

Author: Professional Development Team
Version: 1.0.0
License: MIT
============================================================================
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional, Union

import httpx

from config.constants import MessageTemplates, NotificationProvider, TargetStatus
from config.settings import NotificationSettings
from exceptions.monitoring import (
    NotificationConfigError,
    NotificationDeliveryError,
    NotificationException,
    UnknownProviderError,
)
from monitoring.models import ChannelConfig, CheckResult, Target
from utils.helpers import StringHelper, TimeHelper
from utils.logger import get_logger


logger = get_logger("Notifiers")


# ============================================================================
# ALERT MESSAGE
# ============================================================================

@dataclass(frozen=True)
class AlertMessage:
    """A DOWN alert for one target, rendered once and sent through one channel."""

    target: Target
    result: CheckResult

    @property
    def summary(self) -> str:
        return (
            f"Health check failed for {self.target.url}. "
            f"Status code: {self.result.status_code}"
        )

    @property
    def text(self) -> str:
        return MessageTemplates.TARGET_DOWN.format(
            emoji=TargetStatus.get_emoji(TargetStatus.DOWN),
            url=self.target.url,
            status_code=self.result.status_code,
            error=StringHelper.truncate(self.result.error or "none", 500),
            response_time=StringHelper.format_response_time(self.result.response_time_ms),
            check_time=TimeHelper.format_datetime(self.result.check_time),
        )


# ============================================================================
# ADAPTERS
# ============================================================================

class BaseNotifier(ABC):
    """
    Base channel adapter.

    Subclasses set ``provider`` and implement :meth:`send`.
    """

    provider: NotificationProvider

    def __init__(self, client: httpx.AsyncClient, settings: NotificationSettings):
        self.client = client
        self.settings = settings

    @abstractmethod
    async def send(self, config: ChannelConfig, alert: AlertMessage) -> None:
        """Deliver *alert* or raise a NotificationException."""

    def _credential(self, config: ChannelConfig, key: str) -> Any:
        value = (config.credentials or {}).get(key)
        if value in (None, ""):
            raise NotificationConfigError(
                f"{self.provider.value} channel is missing '{key}'",
                provider=self.provider.value,
                details={"user_id": config.user_id},
            )
        return value

    async def _request(
        self,
        url: str,
        payload: Dict[str, Any],
        method: str = "POST",
        headers: Optional[Mapping[str, str]] = None,
    ) -> httpx.Response:
        try:
            response = await self.client.request(method, url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise NotificationDeliveryError(
                f"{self.provider.value} request failed: {type(e).__name__}: {e}",
                provider=self.provider.value,
                cause=e,
            ) from e

        if response.is_error:
            raise NotificationDeliveryError(
                f"{self.provider.value} rejected the message with HTTP {response.status_code}",
                provider=self.provider.value,
                status_code=response.status_code,
                details={"body": StringHelper.truncate(response.text, 200)},
            )

        return response


class TelegramNotifier(BaseNotifier):
    """Telegram Bot API ``sendMessage`` (plain text, no parse mode)."""

    provider = NotificationProvider.TELEGRAM

    async def send(self, config: ChannelConfig, alert: AlertMessage) -> None:
        bot_token = self._credential(config, "bot_token")
        chat_id = self._credential(config, "chat_id")

        url = f"{self.settings.telegram_api_base.rstrip('/')}/bot{bot_token}/sendMessage"
        await self._request(url, {"chat_id": chat_id, "text": alert.text})


class SlackNotifier(BaseNotifier):
    """Slack incoming webhook."""

    provider = NotificationProvider.SLACK

    async def send(self, config: ChannelConfig, alert: AlertMessage) -> None:
        webhook_url = self._credential(config, "webhook_url")
        await self._request(webhook_url, {"text": alert.text})


class DiscordNotifier(BaseNotifier):
    """Discord channel webhook."""

    provider = NotificationProvider.DISCORD

    async def send(self, config: ChannelConfig, alert: AlertMessage) -> None:
        webhook_url = self._credential(config, "webhook_url")
        await self._request(webhook_url, {"content": alert.text})


class WebhookNotifier(BaseNotifier):
    """
    Generic webhook with a configurable method and headers.

    Credentials: ``webhook_url`` (required), ``method`` (default POST),
    ``headers`` (mapping or JSON object string).
    """

    provider = NotificationProvider.WEBHOOK

    ALLOWED_METHODS = ("POST", "PUT", "PATCH")

    async def send(self, config: ChannelConfig, alert: AlertMessage) -> None:
        webhook_url = self._credential(config, "webhook_url")
        method = str(config.credentials.get("method") or "POST").upper()
        if method not in self.ALLOWED_METHODS:
            raise NotificationConfigError(
                f"Unsupported webhook method {method!r}",
                provider=self.provider.value,
            )

        payload = {
            "message": alert.summary,
            "url": alert.target.url,
            "statusCode": alert.result.status_code,
            "responseTimeMs": alert.result.response_time_ms,
        }
        await self._request(
            webhook_url,
            payload,
            method=method,
            headers=self._headers(config.credentials.get("headers")),
        )

    def _headers(self, raw: Union[None, str, Mapping[str, Any]]) -> Dict[str, str]:
        if not raw:
            return {}
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except json.JSONDecodeError as e:
                raise NotificationConfigError(
                    "Webhook headers must be a valid JSON object",
                    provider=self.provider.value,
                    cause=e,
                ) from e
        if not isinstance(raw, Mapping):
            raise NotificationConfigError(
                "Webhook headers must be a valid JSON object",
                provider=self.provider.value,
            )
        return {str(k): str(v) for k, v in raw.items()}


DEFAULT_NOTIFIERS = (TelegramNotifier, SlackNotifier, DiscordNotifier, WebhookNotifier)


# ============================================================================
# DISPATCH
# ============================================================================

class NotifierDispatch:
    """
    Routes an alert to the adapter registered for a provider.

    Owns the shared ``httpx.AsyncClient`` unless one is injected.
    """

    def __init__(
        self,
        settings: Optional[NotificationSettings] = None,
        client: Optional[httpx.AsyncClient] = None,
        notifiers: Iterable[type] = DEFAULT_NOTIFIERS,
    ):
        self.settings = settings or NotificationSettings()
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(self.settings.timeout_seconds),
        )
        self._adapters: Dict[NotificationProvider, BaseNotifier] = {}
        for notifier_cls in notifiers:
            self.register(notifier_cls(self.client, self.settings))

        self.sent_count = 0
        self.failed_count = 0

    def register(self, notifier: BaseNotifier) -> None:
        self._adapters[notifier.provider] = notifier

    @property
    def providers(self) -> tuple:
        return tuple(self._adapters)

    async def send(
        self,
        provider: Union[NotificationProvider, str],
        config: ChannelConfig,
        alert: AlertMessage,
    ) -> bool:
        """
        Send *alert* through *provider*.

        Returns:
            True on delivery, False on any notification failure (logged)
        """
        try:
            adapter = self._adapter_for(provider)
            await adapter.send(config, alert)
        except NotificationException as e:
            self.failed_count += 1
            logger.warning(
                f"[Notify] Alert for {alert.target.url} via {provider} failed — {e.log_format()}"
            )
            return False

        self.sent_count += 1
        logger.info(f"[Notify] Alert for {alert.target.url} sent via {adapter.provider.value}")
        return True

    def _adapter_for(self, provider: Union[NotificationProvider, str]) -> BaseNotifier:
        try:
            key = NotificationProvider(provider)
        except ValueError:
            raise UnknownProviderError(f"Unknown provider {provider!r}", provider=str(provider)) from None

        adapter = self._adapters.get(key)
        if adapter is None:
            raise UnknownProviderError(f"No adapter registered for {key.value}", provider=key.value)
        return adapter

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()
