"""
Tests for {{placeholder}} substitution in strict and lenient modes.
"""

import pytest
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from services.contracts import (
    UnresolvedVariable,
    find_placeholders,
    substitute,
    substitute_all,
)


class TestFindPlaceholders:

    def test_order_of_first_appearance(self):
        text = "{{b}} e {{a}} e {{b}}"
        assert find_placeholders(text) == ['b', 'a']

    def test_ignores_malformed_tokens(self):
        assert find_placeholders("{{ client_name }} {client_cpf} {{client-cep}}") == []

    def test_empty_text(self):
        assert find_placeholders(None) == []


class TestSubstitute:
    """Single-text substitution."""

    def test_replaces_all_occurrences(self):
        text = "Eu, {{client_name}}, declaro. Assinado: {{client_name}}"
        result = substitute(text, {'client_name': 'Maria'}, strict=True)
        assert result == "Eu, Maria, declaro. Assinado: Maria"

    def test_values_coerced_to_string(self):
        assert substitute("Ano {{year}}", {'year': 2024}, strict=True) == "Ano 2024"

    def test_none_becomes_empty(self):
        assert substitute("[{{x}}]", {'x': None}, strict=True) == "[]"

    def test_case_sensitive(self):
        with pytest.raises(UnresolvedVariable):
            substitute("{{Client_Name}}", {'client_name': 'Maria'}, strict=True)

    def test_strict_raises_with_names(self):
        with pytest.raises(UnresolvedVariable) as exc_info:
            substitute("{{a}} {{b}}", {'a': 1}, strict=True, template_name='Anexo V')
        assert exc_info.value.names == ['b']
        assert 'Anexo V' in str(exc_info.value)

    def test_lenient_leaves_token(self):
        result = substitute("{{a}} {{b}}", {'a': 1}, strict=False)
        assert result == "1 {{b}}"

    def test_empty_text(self):
        assert substitute("", {}, strict=True) == ""

    def test_no_placeholders_untouched(self):
        assert substitute("R$ {50}", {}, strict=True) == "R$ {50}"


class TestSubstituteAll:

    def test_union_of_missing_names(self):
        texts = ["{{a}} {{b}}", "{{c}}", "{{a}}"]
        with pytest.raises(UnresolvedVariable) as exc_info:
            substitute_all(texts, {'a': 1}, strict=True)
        assert exc_info.value.names == ['b', 'c']

    def test_all_resolved(self):
        assert substitute_all(["{{a}}", "x"], {'a': 'ok'}, strict=True) == ["ok", "x"]


class TestConfiguredMode:
    """The mode defaults to PLACEHOLDER_STRICT."""

    def test_strict_without_app(self):
        with pytest.raises(UnresolvedVariable):
            substitute("{{missing}}", {})

    def test_strict_from_config(self, app):
        with pytest.raises(UnresolvedVariable):
            substitute("{{missing}}", {})

    def test_lenient_from_config(self, app):
        app.config['PLACEHOLDER_STRICT'] = False
        assert substitute("{{missing}}", {}) == "{{missing}}"


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
