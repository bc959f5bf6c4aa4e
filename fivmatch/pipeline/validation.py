"""
Intake stage 1: NORMALIZE + VALIDATE — raw form payload → LeadDraft.

Never raises on bad input. Returns a ValidationResult carrying either the
sanitized draft or a map of field → localized error message.

Required enums (tried_ivf, budget_range, urgency_level) are rejected when
invalid; optional enums (primary_factor, voucher_status, best_contact_method,
test_status) are silently dropped instead.
"""
import math
import re
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Optional

from fivmatch.config import (
    AGE_RANGES, LEGACY_TIMELINES, BUDGET_RANGES, URGENCY_LEVELS, TRIED_IVF_VALUES,
    TEST_STATUSES, PRIMARY_FACTORS, VOUCHER_STATUSES, CONTACT_METHODS, DEFAULT_LOCALE,
)
from fivmatch.messages import resolve_locale, validation_error

MAX_FIELD_LENGTH = 500

FEMALE_AGE_MIN, FEMALE_AGE_MAX = 18, 50
MALE_AGE_MIN, MALE_AGE_MAX = 18, 70

EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
PHONE_SEPARATORS_RE = re.compile(r'[\s\-.()]')
PHONE_PREFIX_RE = re.compile(r'^(\+?40|0)')
LEADING_INT_RE = re.compile(r'^\s*([+-]?\d+)')


@dataclass
class LeadDraft:
    """Sanitized, typed submission ready for the abuse gate and persistence."""
    first_name: str
    last_name: str
    phone: str
    email: str
    city: str
    female_age_exact: int
    tried_ivf: str
    budget_range: str
    urgency_level: str
    gdpr_consent: bool
    consent_to_share: bool
    locale: str = DEFAULT_LOCALE
    age_range: str = 'under-30'
    timeline: str = 'researching'
    male_age_exact: Optional[int] = None
    test_status: Optional[str] = None
    primary_factor: Optional[str] = None
    voucher_status: Optional[str] = None
    has_recent_tests: Optional[bool] = None
    tests_list: Optional[str] = None
    previous_clinics: Optional[str] = None
    availability_windows: Optional[str] = None
    best_contact_method: Optional[str] = None
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ValidationResult:
    valid: bool
    locale: str
    errors: Dict[str, str] = field(default_factory=dict)
    draft: Optional[LeadDraft] = None


# ── Field helpers ────────────────────────────────────────────────────────────

def sanitize(value: Any) -> str:
    """Trim and cap a free-text value; non-strings become ''."""
    if not isinstance(value, str):
        return ''
    return value.strip()[:MAX_FIELD_LENGTH]


def parse_int(value: Any) -> Optional[int]:
    """Lenient integer parse: 32, 32.0, '32', ' 32 years' → 32; anything else → None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    match = LEADING_INT_RE.match(str(value))
    return int(match.group(1)) if match else None


def is_valid_phone(raw: str) -> bool:
    """
    Romania-friendly phone check.

    Separators (whitespace, dashes, dots, parens) are stripped; the rest must
    start with +40, 40 or 0 and contain 10-13 digits in total.
    """
    stripped = PHONE_SEPARATORS_RE.sub('', raw)
    if not PHONE_PREFIX_RE.match(stripped):
        return False
    digits = re.sub(r'\D', '', stripped)
    return 10 <= len(digits) <= 13


def age_range_for(age: int) -> str:
    if age < 30:
        return 'under-30'
    if age <= 34:
        return '30-34'
    if age <= 37:
        return '35-37'
    if age <= 40:
        return '38-40'
    return '41+'


def timeline_for(urgency_level: str) -> str:
    if urgency_level == 'ASAP_0_30':
        return 'asap'
    if urgency_level in ('SOON_1_3', 'MID_3_6'):
        return '1-3months'
    return 'researching'


def _optional_enum(value: str, allowed) -> Optional[str]:
    return value if value and value in allowed else None


def _truthy_flag(value: Any) -> bool:
    return value is True or value in ('yes', 'true')


# ── Entry point ──────────────────────────────────────────────────────────────

def validate_lead_payload(body: Any) -> ValidationResult:
    """Validate a raw submission. The locale in the payload localizes every error."""
    if not isinstance(body, dict):
        return ValidationResult(
            valid=False,
            locale=DEFAULT_LOCALE,
            errors={'_form': validation_error('invalid_body', DEFAULT_LOCALE)},
        )

    locale = resolve_locale(body.get('locale'))
    errors: Dict[str, str] = {}

    first_name = sanitize(body.get('first_name'))
    last_name = sanitize(body.get('last_name'))
    phone = sanitize(body.get('phone'))
    email = sanitize(body.get('email'))
    city = sanitize(body.get('city'))
    tried_ivf = sanitize(body.get('tried_ivf'))
    budget_range = sanitize(body.get('budget_range'))
    urgency_level = sanitize(body.get('urgency_level'))
    female_age = parse_int(body.get('female_age_exact'))
    male_age = parse_int(body.get('male_age_exact'))

    if not first_name:
        errors['first_name'] = validation_error('first_name_required', locale)
    if not last_name:
        errors['last_name'] = validation_error('last_name_required', locale)

    if not phone:
        errors['phone'] = validation_error('phone_required', locale)
    elif not is_valid_phone(phone):
        errors['phone'] = validation_error('phone_invalid', locale)

    if not email:
        errors['email'] = validation_error('email_required', locale)
    elif not EMAIL_RE.match(email):
        errors['email'] = validation_error('email_invalid', locale)

    if female_age is None or not (FEMALE_AGE_MIN <= female_age <= FEMALE_AGE_MAX):
        errors['female_age_exact'] = validation_error('female_age_exact_required', locale)

    if tried_ivf not in TRIED_IVF_VALUES:
        errors['tried_ivf'] = validation_error('tried_ivf_invalid', locale)

    if budget_range not in BUDGET_RANGES:
        errors['budget_range'] = validation_error('budget_range_invalid', locale)

    if not city:
        errors['city'] = validation_error('city_required', locale)

    if body.get('gdpr_consent') is not True:
        errors['gdpr_consent'] = validation_error('gdpr_required', locale)

    if body.get('consent_to_share') is not True:
        errors['consent_to_share'] = validation_error('consent_to_share_required', locale)

    if urgency_level not in URGENCY_LEVELS:
        errors['urgency_level'] = validation_error('urgency_level_required', locale)

    if errors:
        return ValidationResult(valid=False, locale=locale, errors=errors)

    age_range = sanitize(body.get('age_range'))
    timeline = sanitize(body.get('timeline'))

    draft = LeadDraft(
        first_name=first_name,
        last_name=last_name,
        phone=phone,
        email=email.lower(),
        city=city,
        female_age_exact=female_age,
        tried_ivf=tried_ivf,
        budget_range=budget_range,
        urgency_level=urgency_level,
        gdpr_consent=True,
        consent_to_share=True,
        locale=locale,
        age_range=age_range if age_range in AGE_RANGES else age_range_for(female_age),
        timeline=timeline if timeline in LEGACY_TIMELINES else timeline_for(urgency_level),
        male_age_exact=male_age if male_age is not None and MALE_AGE_MIN <= male_age <= MALE_AGE_MAX else None,
        test_status=_optional_enum(sanitize(body.get('test_status')), TEST_STATUSES),
        primary_factor=_optional_enum(sanitize(body.get('primary_factor')), PRIMARY_FACTORS),
        voucher_status=_optional_enum(sanitize(body.get('voucher_status')), VOUCHER_STATUSES),
        has_recent_tests=True if _truthy_flag(body.get('has_recent_tests')) else None,
        tests_list=sanitize(body.get('tests_list')) or None,
        previous_clinics=sanitize(body.get('previous_clinics')) or None,
        availability_windows=sanitize(body.get('availability_windows')) or None,
        best_contact_method=_optional_enum(sanitize(body.get('best_contact_method')), CONTACT_METHODS),
        message=sanitize(body.get('message')) or None,
    )
    return ValidationResult(valid=True, locale=locale, draft=draft)
