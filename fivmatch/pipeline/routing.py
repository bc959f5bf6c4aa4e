"""
City-based routing — free-text city → recipient e-mail.

Rules come from configuration, either inline JSON (CLINIC_ROUTING_RULES) or a
YAML/JSON file (CLINIC_ROUTING_RULES_FILE):

    - email: bucuresti-clinic@example.com
      cities: [București, Ilfov, Ploiești]
    - email: cluj-clinic@example.com
      cities: [Cluj-Napoca, Sibiu, Brașov]

Matching is case- and diacritic-insensitive: "bucuresti", "BUCUREȘTI" and
"Bucureşti" all hit "București". The first matching rule wins; otherwise the
default address is used. A malformed rule set or a missing default address is
a ConfigError, never a silent fallback.
"""
import json
import logging
import re
import unicodedata
from dataclasses import dataclass
from typing import FrozenSet, List, Optional, Tuple

import yaml

from fivmatch.errors import ConfigError

logger = logging.getLogger('pipeline.routing')

_COMMA_BELOW = str.maketrans({
    '\u0218': 's', '\u0219': 's',
    '\u021a': 't', '\u021b': 't',
})
_NON_ALNUM_RE = re.compile(r'[^a-z0-9\s-]')


def normalize_city(city: str) -> str:
    text = (city or '').strip().lower()
    text = unicodedata.normalize('NFD', text)
    text = ''.join(ch for ch in text if not unicodedata.combining(ch))
    text = text.translate(_COMMA_BELOW)
    return _NON_ALNUM_RE.sub('', text)


@dataclass(frozen=True)
class RoutingRule:
    email: str
    cities: Tuple[str, ...]
    normalized: FrozenSet[str]


@dataclass(frozen=True)
class RoutingResult:
    email: str
    matched_rule: str       # "city-match: Cluj → x@y" or "default"

    @property
    def is_default(self) -> bool:
        return self.matched_rule == 'default'


# ── Rule loading (cached after first parse) ──────────────────────────────────

_rules_cache = {}


def parse_rules(raw) -> List[RoutingRule]:
    """Validate a decoded rule list and compile the normalized city sets."""
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ConfigError("Routing rules must be a list of {email, cities} objects")

    rules = []
    for i, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ConfigError(f"Routing rule #{i} is not an object")
        email = item.get('email')
        cities = item.get('cities')
        if not isinstance(email, str) or '@' not in email:
            raise ConfigError(f"Routing rule #{i} has an invalid email: {email!r}")
        if (not isinstance(cities, list) or not cities
                or not all(isinstance(c, str) for c in cities)):
            raise ConfigError(f"Routing rule #{i} ({email}) needs a non-empty list of city names")
        rules.append(RoutingRule(
            email=email.strip(),
            cities=tuple(cities),
            normalized=frozenset(normalize_city(c) for c in cities),
        ))
    return rules


def load_rules(rules_json: str = '', rules_file: str = '') -> List[RoutingRule]:
    """Load from inline JSON or a YAML/JSON file; the file wins when both are set."""
    key = (rules_json or '', rules_file or '')
    if key in _rules_cache:
        return _rules_cache[key]

    if rules_file:
        try:
            with open(rules_file, 'r', encoding='utf-8') as f:
                raw = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Cannot read routing rules file {rules_file}: {e}") from e
    elif rules_json and rules_json.strip():
        try:
            raw = json.loads(rules_json)
        except ValueError as e:
            raise ConfigError(f"CLINIC_ROUTING_RULES is not valid JSON: {e}") from e
    else:
        raw = None

    rules = parse_rules(raw)
    if rules:
        logger.info("Loaded %d routing rule(s): %s", len(rules),
                    '; '.join(f"{r.email} → [{', '.join(r.cities)}]" for r in rules))
    _rules_cache[key] = rules
    return rules


def reset_routing_cache():
    """Force a re-read on the next load_rules() call (tests, config reload)."""
    _rules_cache.clear()


# ── Resolver ─────────────────────────────────────────────────────────────────

class RoutingResolver:
    def __init__(self, rules: List[RoutingRule], default_email: Optional[str]):
        self.rules = rules
        self.default_email = default_email

    @classmethod
    def from_settings(cls, settings) -> 'RoutingResolver':
        rules = load_rules(settings.routing_rules_json, settings.routing_rules_file)
        return cls(rules, settings.default_routing_email)

    def resolve(self, city: str) -> RoutingResult:
        normalized = normalize_city(city)
        for rule in self.rules:
            if normalized in rule.normalized:
                return RoutingResult(rule.email, f"city-match: {city} → {rule.email}")

        if not self.default_email:
            raise ConfigError("Missing CLINIC_LEADS_EMAIL: no default routing address configured")
        return RoutingResult(self.default_email, 'default')


def resolve_routing_email(city: str, settings) -> RoutingResult:
    """One-shot convenience wrapper over RoutingResolver (rules stay cached)."""
    return RoutingResolver.from_settings(settings).resolve(city)
