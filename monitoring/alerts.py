"""
============================================================================
ICU HEALTH MONITOR - ALERT DISPATCHER
============================================================================
Turns the DOWN-transition candidates collected during one sweep into at
most one outbound alert each.

Design
------
The scheduler hands over every candidate at the end of a sweep, so owner
lookups are batched: one preference query for all owners, then one
channel-config query for the owners that have notifications enabled and
an active provider. Each remaining candidate gets exactly one send,
launched concurrently. A failing send is logged and never retried; a
candidate whose owner is disabled, or has no usable channel, is skipped.

Recovery alerts do not exist: only DOWN transitions become candidates.

Author: Professional Development Team
Version: 1.0.0
License: MIT
============================================================================
"""

import asyncio
from typing import Any, Dict, Sequence

from config.constants import NotificationProvider
from monitoring.models import NotificationPreference
from monitoring.notifiers import AlertMessage, NotifierDispatch
from utils.logger import get_logger


logger = get_logger("AlertDispatcher")


class AlertDispatcher:
    """
    Batch resolver and sender for DOWN alerts.

    Parameters
    ----------
    source :
        Durable-store adapter providing ``get_notification_preferences``
        and ``get_channel_configs``.
    notifier : NotifierDispatch
        Provider router performing the actual sends.
    """

    def __init__(self, source: Any, notifier: NotifierDispatch):
        self.source = source
        self.notifier = notifier

    async def dispatch(self, candidates: Sequence[AlertMessage]) -> int:
        """
        Send one alert per candidate.

        Returns
        -------
        int
            Number of alerts delivered.
        """
        if not candidates:
            return 0

        owner_ids = sorted({c.target.owner_id for c in candidates})

        try:
            preferences = await self.source.get_notification_preferences(owner_ids)
        except Exception as e:
            logger.error(
                f"[Alerts] Could not load notification preferences for "
                f"{len(owner_ids)} owners, {len(candidates)} alerts dropped: {e}"
            )
            return 0

        enabled = self._enabled_providers(preferences)
        if not enabled:
            logger.debug(f"[Alerts] No owner of {len(candidates)} candidates has alerts enabled")
            return 0

        try:
            configs = await self.source.get_channel_configs(sorted(set(enabled.items())))
        except Exception as e:
            logger.error(f"[Alerts] Could not load channel configs, alerts dropped: {e}")
            return 0

        sends = []
        for alert in candidates:
            owner_id = alert.target.owner_id
            provider = enabled.get(owner_id)
            if provider is None:
                logger.debug(f"[Alerts] Owner {owner_id} has notifications disabled, skipping {alert.target.id}")
                continue

            config = configs.get((owner_id, provider))
            if config is None or not config.is_enabled:
                logger.debug(
                    f"[Alerts] Owner {owner_id} has no usable {provider.value} channel, "
                    f"skipping {alert.target.id}"
                )
                continue

            sends.append(self.notifier.send(provider, config, alert))

        if not sends:
            return 0

        outcomes = await asyncio.gather(*sends, return_exceptions=True)

        delivered = 0
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                logger.error(f"[Alerts] Unexpected error while sending alert: {outcome!r}")
            elif outcome:
                delivered += 1

        logger.info(f"[Alerts] Delivered {delivered}/{len(sends)} alerts")
        return delivered

    @staticmethod
    def _enabled_providers(
        preferences: Dict[str, NotificationPreference],
    ) -> Dict[str, NotificationProvider]:
        enabled: Dict[str, NotificationProvider] = {}
        for user_id, preference in preferences.items():
            if preference.notifications_enabled and preference.active_provider is not None:
                enabled[user_id] = NotificationProvider(preference.active_provider)
        return enabled
