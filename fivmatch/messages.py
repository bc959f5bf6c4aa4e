"""
Backend-only bilingual strings (ro / en).

Covers API responses, validation errors, tier reasons and the e-mail subjects
and short bodies the backend sends itself. Page copy lives with the frontend.
"""
from fivmatch.config import SUPPORTED_LOCALES, DEFAULT_LOCALE


def resolve_locale(raw) -> str:
    """Return a supported locale; anything unrecognized falls back to the default."""
    if isinstance(raw, str) and raw in SUPPORTED_LOCALES:
        return raw
    return DEFAULT_LOCALE


def _t(table: dict, key: str, locale: str) -> str:
    entry = table.get(key)
    if not entry:
        return key
    return entry.get(locale) or entry[DEFAULT_LOCALE]


# ── Validation errors ────────────────────────────────────────────────────────

VALIDATION = {
    'first_name_required': {
        'ro': 'Prenumele este obligatoriu',
        'en': 'First name is required',
    },
    'last_name_required': {
        'ro': 'Numele de familie este obligatoriu',
        'en': 'Last name is required',
    },
    'phone_required': {
        'ro': 'Numarul de telefon este obligatoriu',
        'en': 'Phone number is required',
    },
    'phone_invalid': {
        'ro': 'Numarul de telefon nu pare valid (ex. +40 7XX XXX XXX)',
        'en': "This phone number doesn't look valid (e.g. +40 7XX XXX XXX)",
    },
    'email_required': {
        'ro': 'Adresa de email este obligatorie',
        'en': 'Email address is required',
    },
    'email_invalid': {
        'ro': 'Adresa de email nu pare corecta',
        'en': "This email address doesn't look right",
    },
    'tried_ivf_invalid': {
        'ro': 'Selecteaza o optiune',
        'en': 'Select an option',
    },
    'city_required': {
        'ro': 'Completeaza orasul',
        'en': 'Enter your city',
    },
    'budget_range_invalid': {
        'ro': 'Selecteaza bugetul estimativ',
        'en': 'Select your estimated budget',
    },
    'gdpr_required': {
        'ro': 'Trebuie sa accepti prelucrarea datelor pentru a continua',
        'en': 'You need to accept data processing to continue',
    },
    'consent_to_share_required': {
        'ro': 'Trebuie sa accepti partajarea datelor pentru a continua',
        'en': 'You must agree to data sharing to continue',
    },
    'female_age_exact_required': {
        'ro': 'Vârsta (femeie) este obligatorie',
        'en': 'Female age is required',
    },
    'urgency_level_required': {
        'ro': 'Selectează un termen',
        'en': 'Select a timeline',
    },
    'invalid_body': {
        'ro': 'Cererea nu este valida',
        'en': 'Invalid request body',
    },
}


def validation_error(key: str, locale: str) -> str:
    return _t(VALIDATION, key, locale)


# ── API responses ────────────────────────────────────────────────────────────

API = {
    'success': {
        'ro': 'Solicitarea ta a fost primita. Vom confirma detaliile in curand. '
              'O clinica partenera te va contacta dupa verificare.',
        'en': 'We received your request and will confirm details shortly. '
              'A partner clinic will contact you after verification.',
    },
    'next_steps': {
        'ro': 'Vom verifica solicitarea ta si o clinica partenera te va contacta dupa aprobare.',
        'en': 'We will verify your request and a partner clinic will contact you after approval.',
    },
    'validation_failed': {
        'ro': 'Verifica campurile marcate.',
        'en': 'Please check the highlighted fields.',
    },
    'server_error': {
        'ro': 'A aparut o eroare. Incearca din nou.',
        'en': 'An error occurred. Please try again.',
    },
    'invalid_json': {
        'ro': 'Cererea nu a putut fi procesata.',
        'en': 'The request could not be processed.',
    },
}


def api_message(key: str, locale: str) -> str:
    return _t(API, key, locale)


# ── Tier reasons ─────────────────────────────────────────────────────────────

TIER_REASONS = {
    'low_intent': {
        'ro': 'Lead cu intenție scăzută sau doar informare',
        'en': 'Low intent or information-only lead',
    },
    'invalid': {
        'ro': 'Lead marcat ca invalid',
        'en': 'Lead marked as invalid',
    },
    'unverified': {
        'ro': 'Lead neverificat de operator',
        'en': 'Lead not verified by operator',
    },
    'no_consent': {
        'ro': 'Fără consimțământ pentru partajare',
        'en': 'No consent to share',
    },
    'info_only': {
        'ro': 'Doar informare, fără urgență',
        'en': 'Information only, no urgency',
    },
    'later': {
        'ro': 'Urgență scăzută (6-12 luni)',
        'en': 'Low urgency (6-12 months)',
    },
    'tier_a': {
        'ro': 'Lead verificat, urgență bună, vârstă optimă, metodă de contact disponibilă',
        'en': 'Verified lead, good urgency, optimal age, contact method available',
    },
    'tier_a_both': {
        'ro': ', disponibilitate și analize documentate',
        'en': ', availability and tests documented',
    },
    'tier_a_availability': {
        'ro': ', disponibilitate documentată',
        'en': ', availability documented',
    },
    'tier_a_tests': {
        'ro': ', analize documentate',
        'en': ', tests documented',
    },
    'tier_b': {
        'ro': 'Lead verificat cu urgență bună, dar lipsește: {missing}',
        'en': 'Verified lead with good urgency, but missing: {missing}',
    },
    'tier_c': {
        'ro': 'Lead verificat dar cu urgență scăzută sau informații incomplete',
        'en': 'Verified lead but with low urgency or incomplete information',
    },
    'missing_age': {'ro': 'vârstă', 'en': 'age'},
    'missing_contact': {'ro': 'metodă contact', 'en': 'contact method'},
    'missing_availability': {'ro': 'disponibilitate', 'en': 'availability'},
    'missing_tests': {'ro': 'informații analize', 'en': 'test info'},
}


def tier_reason(key: str, locale: str) -> str:
    return _t(TIER_REASONS, key, locale)


# ── E-mail subjects and short bodies ─────────────────────────────────────────

USER_SUBJECT = {
    'ro': 'Solicitarea ta pentru FIV a fost primita',
    'en': 'Your IVF request has been received',
}

USER_BODY = {
    'ro': 'Buna {first_name}, multumim pentru solicitare. Te vom contacta telefonic pentru '
          'confirmare, iar apoi o clinica partenera te va contacta. Referinta: {short_id}.',
    'en': 'Hi {first_name}, thank you for your request. We will contact you by phone for '
          'confirmation, and then a partner clinic will contact you. Reference: {short_id}.',
}

INTERNAL_SUBJECT = {
    'ro': 'Lead nou - de verificat',
    'en': 'New lead - needs verification',
}

CLINIC_SUBJECT = {
    'high': {'ro': 'Lead nou FIV - intent ridicat', 'en': 'New IVF Lead - high intent'},
    'medium': {'ro': 'Lead nou FIV - intent mediu', 'en': 'New IVF Lead - medium intent'},
    'low': {'ro': 'Lead nou FIV - doar informativ', 'en': 'New IVF Lead - informational only'},
}

NURTURE_SUBJECTS = {
    1: {
        'ro': 'Ce presupune FIV în România – pași generali',
        'en': 'What IVF involves in Romania – general steps',
    },
    2: {
        'ro': 'Când este momentul potrivit pentru a începe FIV?',
        'en': 'When is the right time to start IVF?',
    },
    3: {
        'ro': 'Doriți să discutăm opțiunile disponibile?',
        'en': 'Would you like to discuss available options?',
    },
}

NURTURE_BODIES = {
    1: {
        'ro': 'Mulțumim că v-ați interesat de opțiunile de tratament FIV în România. '
              'Procesul include consultarea inițială, investigațiile medicale, stimularea '
              'ovariană, colectarea ovulelor și transferul embrionului.',
        'en': 'Thank you for your interest in IVF treatment options in Romania. '
              'The process includes an initial consultation, medical investigations, '
              'ovarian stimulation, egg collection and embryo transfer.',
    },
    2: {
        'ro': 'Momentul potrivit pentru FIV depinde de vârstă, istoricul medical, '
              'investigațiile complete și pregătirea emoțională și financiară.',
        'en': 'The right time to start IVF depends on age, medical history, complete '
              'investigations and emotional and financial preparation.',
    },
    3: {
        'ro': 'Dacă doriți să explorați opțiunile disponibile, vă putem conecta cu '
              'clinici private partenere din România.',
        'en': 'If you would like to explore the available options, we can connect you '
              'with private partner clinics in Romania.',
    },
}

UNSUBSCRIBE = {
    'ro': 'Nu mai doriți să primiți aceste emailuri? Anulați abonarea',
    'en': "Don't want to receive these emails? Unsubscribe",
}


def user_subject(locale: str) -> str:
    return USER_SUBJECT.get(locale, USER_SUBJECT[DEFAULT_LOCALE])


def internal_subject(locale: str) -> str:
    return INTERNAL_SUBJECT.get(locale, INTERNAL_SUBJECT[DEFAULT_LOCALE])


def clinic_subject(intent_level: str, locale: str) -> str:
    return _t(CLINIC_SUBJECT, intent_level or 'high', locale)


def nurture_subject(stage: int, locale: str) -> str:
    return _t(NURTURE_SUBJECTS, stage, locale)
