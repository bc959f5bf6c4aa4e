"""
Operator priority tier (A/B/C/D) with a human-readable reason.

Pure function, recomputed on every operator status change to VERIFIED_READY,
LOW_INTENT_NURTURE or INVALID. The reason is written in the lead's locale.

The tier age band (20-45) is narrower than what the validator admits (18-50):
admission and scoring bonus are separate thresholds.
"""
from dataclasses import dataclass
from typing import Optional

from fivmatch.messages import tier_reason

GOOD_URGENCY = ('ASAP_0_30', 'SOON_1_3', 'MID_3_6')
TIER_AGE_MIN, TIER_AGE_MAX = 20, 45


@dataclass
class TierInput:
    status: str
    urgency_level: Optional[str] = None
    consent_to_share: bool = False
    female_age_exact: Optional[int] = None
    best_contact_method: Optional[str] = None
    availability_windows: Optional[str] = None
    has_recent_tests: Optional[bool] = None
    tests_list: Optional[str] = None

    @classmethod
    def from_lead(cls, lead, status: Optional[str] = None) -> 'TierInput':
        """Build from a Lead row (or LeadDraft); `status` overrides the stored one."""
        return cls(
            status=status or getattr(lead, 'status', 'NEW'),
            urgency_level=lead.urgency_level,
            consent_to_share=bool(lead.consent_to_share),
            female_age_exact=lead.female_age_exact,
            best_contact_method=lead.best_contact_method,
            availability_windows=lead.availability_windows,
            has_recent_tests=lead.has_recent_tests,
            tests_list=lead.tests_list,
        )


@dataclass
class TierResult:
    tier: str
    reason: str


def _filled(text: Optional[str]) -> bool:
    return bool(text and text.strip())


def compute_tier(data: TierInput, locale: str = 'ro') -> TierResult:
    if data.status != 'VERIFIED_READY':
        if data.status == 'LOW_INTENT_NURTURE':
            return TierResult('D', tier_reason('low_intent', locale))
        if data.status == 'INVALID':
            return TierResult('D', tier_reason('invalid', locale))
        return TierResult('D', tier_reason('unverified', locale))

    if not data.consent_to_share:
        return TierResult('D', tier_reason('no_consent', locale))

    if data.urgency_level == 'INFO_ONLY':
        return TierResult('D', tier_reason('info_only', locale))

    if data.urgency_level == 'LATER_6_12':
        return TierResult('C', tier_reason('later', locale))

    good_urgency = data.urgency_level in GOOD_URGENCY
    good_age = (
        data.female_age_exact is not None
        and TIER_AGE_MIN <= data.female_age_exact <= TIER_AGE_MAX
    )
    has_contact = bool(data.best_contact_method)
    has_availability = _filled(data.availability_windows)
    has_tests = data.has_recent_tests is True or _filled(data.tests_list)

    if good_urgency and good_age and has_contact:
        reason = tier_reason('tier_a', locale)
        if has_availability and has_tests:
            reason += tier_reason('tier_a_both', locale)
        elif has_availability:
            reason += tier_reason('tier_a_availability', locale)
        elif has_tests:
            reason += tier_reason('tier_a_tests', locale)
        return TierResult('A', reason)

    if good_urgency:
        missing = []
        if not good_age:
            missing.append(tier_reason('missing_age', locale))
        if not has_contact:
            missing.append(tier_reason('missing_contact', locale))
        if not has_availability:
            missing.append(tier_reason('missing_availability', locale))
        if not has_tests:
            missing.append(tier_reason('missing_tests', locale))
        return TierResult('B', tier_reason('tier_b', locale).format(missing=', '.join(missing)))

    return TierResult('C', tier_reason('tier_c', locale))
