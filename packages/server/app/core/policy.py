"""
Static authorization policy.

A casbin enforcer is built once per process from the model and policy files
named in settings and never mutated afterwards. ``enforce`` is pure with
respect to that rule set: it performs no I/O and knows nothing about users,
only about subjects, resources and actions.

Policy resource patterns are anchored regular expressions matched with
casbin's ``regexMatch``. The model's matcher allows the ``app:admin``
subject on every resource and action.
"""

from __future__ import annotations

import asyncio
import re
import time
from pathlib import Path
from typing import NamedTuple, Optional

import casbin
import structlog

from app.core.config import get_settings
from app.core.errors import PolicyError
from app.core.resources import is_unscoped_pattern

log = structlog.get_logger()

SCOPED_SUBJECT_PREFIXES = ("org:", "group:")


class PolicyRule(NamedTuple):
    subject: str
    resource: str
    action: str


def _validate_rules(raw_rules: list[list[str]]) -> list[PolicyRule]:
    """Check every loaded ``p`` line; raises PolicyError on the first bad one."""
    rules: list[PolicyRule] = []
    for raw in raw_rules:
        if len(raw) != 3 or not all(field.strip() for field in raw):
            raise PolicyError(f"Malformed policy rule: {', '.join(raw)!r}")
        try:
            re.compile(raw[1])
        except re.error as exc:
            raise PolicyError(f"Invalid resource pattern {raw[1]!r}: {exc}") from exc
        rules.append(PolicyRule(*raw))
    return rules


def _warn_unreachable(rules: list[PolicyRule]) -> None:
    for rule in rules:
        # Scoped subjects are only ever resolved inside an org/group context.
        if rule.subject.startswith(SCOPED_SUBJECT_PREFIXES) and is_unscoped_pattern(rule.resource):
            log.warning("policy.unreachable_rule", rule=list(rule))


class PolicyEngine:
    """Lazily built casbin enforcer shared by every request."""

    def __init__(self, model_path: str, policy_path: str):
        self.model_path = model_path
        self.policy_path = policy_path
        self.compile_count = 0
        self._enforcer: Optional[casbin.Enforcer] = None
        self._rules: list[PolicyRule] = []
        self._pending: Optional[asyncio.Future] = None

    @property
    def is_loaded(self) -> bool:
        return self._enforcer is not None

    async def get_enforcer(self) -> casbin.Enforcer:
        """Return the enforcer, building it on first use.

        Concurrent first callers all await the same in-flight build. A
        failed build is reported to every waiter and then forgotten so a
        later call can try again.
        """
        if self._enforcer is not None:
            return self._enforcer

        if self._pending is None:
            self._pending = asyncio.ensure_future(self._load())
        pending = self._pending

        try:
            return await asyncio.shield(pending)
        except Exception:
            if pending.done() and self._pending is pending:
                self._pending = None
            raise

    async def enforce(self, subject: str, resource: str, action: str) -> bool:
        enforcer = await self.get_enforcer()
        return enforcer.enforce(subject, resource, action)

    async def rules(self) -> list[PolicyRule]:
        await self.get_enforcer()
        return list(self._rules)

    async def _load(self) -> casbin.Enforcer:
        started = time.perf_counter()
        enforcer = await asyncio.to_thread(self._compile)
        self._enforcer = enforcer
        log.info(
            "policy.compiled",
            rules=len(self._rules),
            policy_path=self.policy_path,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return enforcer

    def _compile(self) -> casbin.Enforcer:
        self.compile_count += 1
        for path in (self.model_path, self.policy_path):
            if not Path(path).is_file():
                raise PolicyError(f"Authorization policy file not found: {path}")

        try:
            enforcer = casbin.Enforcer(self.model_path, self.policy_path)
        except Exception as exc:
            raise PolicyError(f"Failed to load authorization policy: {exc}") from exc
        rules = _validate_rules(enforcer.get_policy())
        _warn_unreachable(rules)
        self._rules = rules
        return enforcer


# ---------------------------------------------------------------------------
# Process-wide instance
# ---------------------------------------------------------------------------

_engine: Optional[PolicyEngine] = None


def get_policy_engine() -> PolicyEngine:
    """Get or create the process-wide policy engine."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = PolicyEngine(settings.rbac_model_path, settings.rbac_policy_path)
    return _engine


def reset_policy_engine() -> None:
    """Drop the enforcer; the next check rebuilds it from disk."""
    global _engine
    _engine = None
