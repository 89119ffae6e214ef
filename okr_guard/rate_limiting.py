"""
Mutation rate limiting.

Fixed windows counted in the Django cache. Each counter is keyed by context,
rule, principal and window index, so increments never contend across
principals and counters expire with their window.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from django.core.cache import cache

from .config_proxy import get_setting
from .rbac.types import Action, ActionClass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitRule:
    name: str
    limit: int
    window_seconds: int
    enabled: bool = True


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    retry_after: Optional[int] = None
    rule: Optional[RateLimitRule] = None
    context: Optional[str] = None
    count: Optional[int] = None


def _normalize_rules(context_name: str, raw_rules: Iterable[Dict[str, Any]]) -> List[RateLimitRule]:
    normalized: List[RateLimitRule] = []
    for idx, rule in enumerate(raw_rules or []):
        if isinstance(rule, RateLimitRule):
            normalized.append(rule)
            continue
        if not isinstance(rule, dict):
            continue
        normalized.append(
            RateLimitRule(
                name=str(rule.get("name") or f"{context_name}_{idx}"),
                limit=int(rule.get("limit", 0) or 0),
                window_seconds=int(rule.get("window_seconds", 0) or 0),
                enabled=bool(rule.get("enabled", True)),
            )
        )
    return normalized


def _normalize_config(raw_config: Dict[str, Any]) -> Dict[str, Any]:
    contexts: Dict[str, Dict[str, Any]] = {}
    contexts_raw = raw_config.get("contexts")
    if isinstance(contexts_raw, dict):
        for context_name, context_cfg in contexts_raw.items():
            if not isinstance(context_cfg, dict):
                continue
            actions = context_cfg.get("actions")
            contexts[context_name] = {
                "enabled": bool(context_cfg.get("enabled", True)),
                "actions": frozenset(str(a) for a in actions) if actions else None,
                "rules": _normalize_rules(context_name, context_cfg.get("rules") or []),
            }
    return {"enabled": bool(raw_config.get("enabled", True)), "contexts": contexts}


def _load_rate_limit_config() -> Dict[str, Any]:
    return _normalize_config(
        {
            "enabled": get_setting("rate_limiting.enabled", True),
            "contexts": get_setting("rate_limiting.contexts", {}),
        }
    )


def _consume(cache_key: str, limit: int, window_seconds: int) -> Optional[int]:
    """Atomically count one request, returning the new count (None on cache failure)."""
    try:
        cache.add(cache_key, 0, timeout=window_seconds + 1)
        return int(cache.incr(cache_key))
    except ValueError:
        # Evicted between add and incr.
        cache.set(cache_key, 1, timeout=window_seconds + 1)
        return 1
    except Exception as exc:
        logger.warning("Rate limit cache error for %s: %s", cache_key, exc)
        return None


def _release(cache_key: str) -> None:
    """Give back one request counted by _consume."""
    try:
        cache.decr(cache_key)
    except ValueError:
        # Window already expired.
        pass
    except Exception as exc:
        logger.warning("Rate limit cache error for %s: %s", cache_key, exc)


class MutationRateLimiter:
    """Bounds mutation-class requests per principal."""

    def __init__(self, config: Optional[Dict[str, Any]] = None, clock: Callable[[], float] = time.time):
        self._config = _normalize_config(config) if config is not None else _load_rate_limit_config()
        self._clock = clock

    def _get_context(self, context: str) -> Optional[Dict[str, Any]]:
        return self._config.get("contexts", {}).get(context)

    def is_enabled(self, context: str) -> bool:
        if not self._config.get("enabled", True):
            return False
        context_cfg = self._get_context(context)
        return bool(context_cfg and context_cfg.get("enabled", True))

    def get_rules(self, context: str) -> List[RateLimitRule]:
        context_cfg = self._get_context(context)
        if not context_cfg:
            return []
        return list(context_cfg.get("rules", []))

    def context_for(self, action: Action) -> Optional[str]:
        """The configured context counting this action, if any."""
        if action.action_class != ActionClass.MUTATION:
            return None
        for name, context_cfg in self._config.get("contexts", {}).items():
            actions = context_cfg.get("actions")
            if actions is None and name == ActionClass.MUTATION.value:
                return name
            if actions is not None and action.value in actions:
                return name
        return None

    def check(self, principal_id: Any, action: Action) -> RateLimitResult:
        context = self.context_for(action)
        if context is None or principal_id is None or not self.is_enabled(context):
            return RateLimitResult(allowed=True, context=context)

        now = self._clock()
        consumed: List[str] = []
        for rule in self.get_rules(context):
            if not rule.enabled or rule.limit <= 0 or rule.window_seconds <= 0:
                continue
            window_index = int(now // rule.window_seconds)
            cache_key = f"okr_guard:rl:{context}:{rule.name}:{principal_id}:{window_index}"
            count = _consume(cache_key, rule.limit, rule.window_seconds)
            if count is None:
                continue
            consumed.append(cache_key)
            if count > rule.limit:
                # A denied request counts against no rule.
                for key in consumed:
                    _release(key)
                window_end = (window_index + 1) * rule.window_seconds
                retry_after = max(int(math.ceil(window_end - now)), 1)
                return RateLimitResult(
                    allowed=False,
                    retry_after=retry_after,
                    rule=rule,
                    context=context,
                    count=count,
                )
        return RateLimitResult(allowed=True, context=context)


_rate_limiter: Optional[MutationRateLimiter] = None


def get_rate_limiter() -> MutationRateLimiter:
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = MutationRateLimiter()
    return _rate_limiter


def clear_rate_limiter_cache() -> None:
    global _rate_limiter
    _rate_limiter = None
