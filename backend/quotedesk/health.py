from __future__ import annotations

import logging
import threading

from quotedesk.schemas.quote import ProviderHealthState

logger = logging.getLogger(__name__)


class ProviderHealthTracker:
    """Per-provider cooldown after an explicit rate-limit signal.

    Other failures are one-shot and never recorded here.
    """

    def __init__(self, cooldowns: dict[str, float] | None = None, default_cooldown: float = 60.0) -> None:
        self._cooldowns = dict(cooldowns or {})
        self._default_cooldown = default_cooldown
        self._states: dict[str, ProviderHealthState] = {}
        self._lock = threading.Lock()

    def cooldown_for(self, provider_id: str) -> float:
        return self._cooldowns.get(provider_id, self._default_cooldown)

    def is_blocked(self, provider_id: str, now: float) -> bool:
        blocked_until = self.blocked_until(provider_id)
        return blocked_until is not None and now < blocked_until

    def blocked_until(self, provider_id: str) -> float | None:
        with self._lock:
            state = self._states.get(provider_id)
        return state.blocked_until if state else None

    def record_rate_limit(self, provider_id: str, now: float) -> float:
        blocked_until = now + self.cooldown_for(provider_id)
        with self._lock:
            self._states[provider_id] = ProviderHealthState(blocked_until=blocked_until)
        logger.warning(
            "%s rate limited; skipping it for %.0fs", provider_id, self.cooldown_for(provider_id)
        )
        return blocked_until
