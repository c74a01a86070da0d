"""Per-client context token limits and warning thresholds.

Limits are keyed by client identifier. Values configured on the agent win
over process settings; an unknown client has no limit.
"""

from collections.abc import Mapping
from dataclasses import dataclass

from agent_runtime.platform.settings import Settings, get_settings


@dataclass(frozen=True)
class LimitWarning:
    """Cumulative usage crossed the warning threshold of a client's limit."""

    cumulative_tokens: int
    limit: int
    threshold: float

    @property
    def threshold_percent(self) -> float:
        return round(self.threshold * 100, 2)

    @property
    def usage_percent(self) -> float:
        return round(self.cumulative_tokens / self.limit * 100, 2)


def get_limit(
    client: str,
    limits: Mapping[str, int] | None = None,
    settings: Settings | None = None,
) -> int | None:
    if limits is not None and client in limits:
        return limits[client]
    settings = settings or get_settings()
    return settings.token_limits.limits.get(client)


def get_warning_threshold(override: float | None = None, settings: Settings | None = None) -> float:
    if override is not None:
        return override
    settings = settings or get_settings()
    return settings.token_limits.warning_threshold


def check_limit(
    cumulative_tokens: int,
    client: str,
    limits: Mapping[str, int] | None = None,
    threshold: float | None = None,
    settings: Settings | None = None,
) -> LimitWarning | None:
    """Return a warning when ``cumulative_tokens >= int(limit * threshold)``.

    Returns None when the client has no configured limit or usage is below
    the threshold.
    """
    limit = get_limit(client, limits, settings)
    if limit is None:
        return None
    threshold = get_warning_threshold(threshold, settings)
    if cumulative_tokens >= int(limit * threshold):
        return LimitWarning(cumulative_tokens=cumulative_tokens, limit=limit, threshold=threshold)
    return None
