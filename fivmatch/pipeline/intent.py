"""
Intake stage 3: INTENT — high / medium / low commercial readiness.

Pure function. Computed once at intake and never changed by operator actions.
"""
from typing import Optional

BUDGET_KNOWN = ('under-10k', '10k-20k', 'over-20k')
VOUCHER_APPROVED = ('APPROVED_ASSMB', 'APPROVED_NATIONAL', 'APPROVED_OTHER')
URGENT = ('ASAP_0_30', 'SOON_1_3')
URGENT_TIMELINES = ('asap', '1-3months')


def is_budget_known(budget_range: Optional[str]) -> bool:
    return budget_range in BUDGET_KNOWN


def derive_intent_level(urgency_level: Optional[str] = None,
                        budget_range: Optional[str] = None,
                        has_recent_tests: Optional[bool] = None,
                        voucher_status: Optional[str] = None,
                        timeline: Optional[str] = None) -> str:
    """
    First match wins:
      INFO_ONLY, or timeline 'researching' without urgency  → low
      LATER_6_12    medium with a known budget, else low
      MID_3_6       high with a known budget plus recent tests or an approved
                    voucher, else medium
      ASAP / SOON   medium only for 'prefer-discuss', else high
    Without an urgency bucket the legacy timeline decides (see
    derive_intent_from_timeline).
    """
    budget_known = is_budget_known(budget_range)

    if urgency_level == 'INFO_ONLY':
        return 'low'
    if timeline == 'researching' and not urgency_level:
        return 'low'

    if urgency_level == 'LATER_6_12':
        return 'medium' if budget_known else 'low'

    if urgency_level == 'MID_3_6':
        if budget_known and (has_recent_tests or voucher_status in VOUCHER_APPROVED):
            return 'high'
        return 'medium'

    if urgency_level in URGENT:
        return 'medium' if budget_range == 'prefer-discuss' else 'high'

    return derive_intent_from_timeline(timeline, budget_range)


def derive_intent_from_timeline(timeline: Optional[str], budget_range: Optional[str] = None) -> str:
    """Legacy two-argument form over {asap, 1-3months, researching}."""
    if timeline in URGENT_TIMELINES:
        return 'medium' if budget_range == 'prefer-discuss' else 'high'
    return 'low'
