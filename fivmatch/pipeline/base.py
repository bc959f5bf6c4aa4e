"""
Abuse-gate check contracts.

Every check implements AbuseCheck.check() and returns a CheckResult.
The gate only sees the uniform interface; each concrete check decides on its
own what a submission must look like to pass.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Type


@dataclass
class IntakeContext:
    """Everything a check may look at for one submission."""
    payload: Dict[str, Any]
    ip_hash: str
    now: datetime
    draft: Any = None           # LeadDraft, set once validation has passed


@dataclass
class CheckResult:
    """Uniform output from every abuse check."""
    passed: bool
    check: str = ''
    reason: str = ''
    meta: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, check: str) -> 'CheckResult':
        return cls(passed=True, check=check)

    @classmethod
    def reject(cls, check: str, reason: str, **meta) -> 'CheckResult':
        return cls(passed=False, check=check, reason=reason, meta=meta)


class AbuseCheck(ABC):
    """
    Base class for the abuse-gate checks.

    `phase` decides where the gate runs the check: 'request' checks look only at
    the raw payload and run before validation, 'content' checks need the
    validated draft and run after it.
    """
    name: str = ''
    phase: str = 'request'
    description: str = ''

    @abstractmethod
    def check(self, ctx: IntakeContext) -> CheckResult:
        """
        Inspect one submission.

        Args:
            ctx: The submission context. ctx.draft is None for 'request' checks.

        Returns:
            CheckResult.ok(...) to let the submission through, or
            CheckResult.reject(...) with a machine-readable reason code.
        """
        ...


def get_check(registry: Dict[str, Type[AbuseCheck]], name: str, **kwargs) -> AbuseCheck:
    """Look up and instantiate a check by name."""
    check_cls = registry.get(name)
    if not check_cls:
        raise ValueError(f"No abuse check registered under '{name}'")
    return check_cls(**kwargs)


def describe_checks(checks: List[AbuseCheck]) -> List[Dict[str, Optional[str]]]:
    """Serialize the configured checks into a JSON-friendly list (health endpoint)."""
    return [
        {'name': c.name, 'phase': c.phase, 'description': c.description or ''}
        for c in checks
    ]
