"""Tests for fivmatch.pipeline.routing — city → clinic e-mail resolution."""
import json
from dataclasses import replace

import pytest

from fivmatch.errors import ConfigError
from fivmatch.pipeline.routing import (
    RoutingResolver, load_rules, normalize_city, parse_rules, resolve_routing_email,
)

RULES = [
    {'email': 'bucuresti@clinic.example', 'cities': ['București', 'Ilfov']},
    {'email': 'cluj@clinic.example', 'cities': ['Cluj-Napoca', 'Brașov', 'Timișoara']},
]


class TestNormalizeCity:
    @pytest.mark.parametrize('raw', ['București', 'bucuresti', 'BUCUREȘTI', 'Bucureşti', '  Bucuresti  '])
    def test_variants_collapse(self, raw):
        assert normalize_city(raw) == 'bucuresti'

    def test_keeps_hyphen(self):
        assert normalize_city('Cluj-Napoca') == 'cluj-napoca'

    def test_strips_punctuation(self):
        assert normalize_city('Iași!') == 'iasi'

    def test_empty(self):
        assert normalize_city(None) == ''


class TestParseRules:
    def test_none_is_empty(self):
        assert parse_rules(None) == []

    def test_valid(self):
        rules = parse_rules(RULES)
        assert rules[1].email == 'cluj@clinic.example'
        assert 'brasov' in rules[1].normalized

    @pytest.mark.parametrize('raw', [
        {'email': 'x@y.z', 'cities': ['A']},
        ['not-an-object'],
        [{'email': 'no-at-sign', 'cities': ['A']}],
        [{'email': 'x@y.z', 'cities': []}],
        [{'email': 'x@y.z', 'cities': 'Cluj'}],
        [{'email': 'x@y.z', 'cities': [1, 2]}],
    ])
    def test_malformed(self, raw):
        with pytest.raises(ConfigError):
            parse_rules(raw)


class TestLoadRules:
    def test_inline_json(self):
        rules = load_rules(json.dumps(RULES))
        assert [r.email for r in rules] == ['bucuresti@clinic.example', 'cluj@clinic.example']

    def test_invalid_json(self):
        with pytest.raises(ConfigError):
            load_rules('[{"email": ')

    def test_yaml_file(self, tmp_path):
        path = tmp_path / 'routing.yaml'
        path.write_text(
            '- email: iasi@clinic.example\n'
            '  cities: [Iași, Suceava]\n',
            encoding='utf-8',
        )
        rules = load_rules(rules_file=str(path))
        assert rules[0].email == 'iasi@clinic.example'
        assert rules[0].cities == ('Iași', 'Suceava')

    def test_file_wins_over_inline(self, tmp_path):
        path = tmp_path / 'routing.yaml'
        path.write_text(json.dumps([{'email': 'file@clinic.example', 'cities': ['Arad']}]), encoding='utf-8')
        rules = load_rules(json.dumps(RULES), str(path))
        assert [r.email for r in rules] == ['file@clinic.example']

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_rules(rules_file=str(tmp_path / 'nope.yaml'))

    def test_nothing_configured(self):
        assert load_rules('', '') == []

    def test_cached(self, tmp_path):
        path = tmp_path / 'routing.yaml'
        path.write_text(json.dumps(RULES), encoding='utf-8')
        first = load_rules(rules_file=str(path))
        path.write_text('[]', encoding='utf-8')
        assert load_rules(rules_file=str(path)) is first


class TestRoutingResolver:
    @pytest.fixture
    def resolver(self):
        return RoutingResolver(parse_rules(RULES), 'default@fivmatch.ro')

    def test_city_match(self, resolver):
        result = resolver.resolve('bucuresti')
        assert result.email == 'bucuresti@clinic.example'
        assert result.matched_rule == 'city-match: bucuresti → bucuresti@clinic.example'
        assert not result.is_default

    def test_diacritics_insensitive(self, resolver):
        assert resolver.resolve('TIMIŞOARA').email == 'cluj@clinic.example'

    def test_default(self, resolver):
        result = resolver.resolve('Constanța')
        assert result.email == 'default@fivmatch.ro'
        assert result.matched_rule == 'default'
        assert result.is_default

    def test_first_rule_wins(self):
        rules = parse_rules([
            {'email': 'first@clinic.example', 'cities': ['Arad']},
            {'email': 'second@clinic.example', 'cities': ['Arad']},
        ])
        assert RoutingResolver(rules, 'd@fivmatch.ro').resolve('Arad').email == 'first@clinic.example'

    def test_missing_default_raises(self):
        with pytest.raises(ConfigError):
            RoutingResolver([], None).resolve('Arad')

    def test_missing_default_irrelevant_on_match(self):
        resolver = RoutingResolver(parse_rules(RULES), None)
        assert resolver.resolve('Ilfov').email == 'bucuresti@clinic.example'


class TestResolveRoutingEmail:
    def test_uses_settings(self, settings):
        configured = replace(settings, routing_rules_json=json.dumps(RULES))
        assert resolve_routing_email('Brasov', configured).email == 'cluj@clinic.example'
        assert resolve_routing_email('Oradea', configured).email == 'leads@fivmatch.ro'
