"""
Template Definition Test Harness

Validates all template definitions on every test run.
This ensures configuration errors are caught before deployment.

Run with: python -m pytest tests/test_template_definitions.py -v
"""

import pytest
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from services.contracts import (
    TemplateDefinitionLoader,
    LayoutKind,
    ConfigurationError,
    ValidationError,
)


VALID_DEFINITION = """
schema_version: "1.0"
slug: checklist
name: "Anexo VIII - Checklist de Entrega"
title: "ANEXO VIII - CHECKLIST DE ENTREGA"
layout: simple
number_prefix: CHECK
document_type:
  name: "Anexos de Locação"
  category: annex
variables: [client_name]
clauses:
  - clause_number: 1
    title: "Checklist"
    order_index: 1
    content: "Recebi o veículo, {{client_name}}."
"""


@pytest.fixture(autouse=True)
def restore_definitions():
    """Leave the shipped definitions loaded after every test."""
    yield
    TemplateDefinitionLoader.clear()
    TemplateDefinitionLoader.load_all()


class TestTemplateDefinitionLoader:
    """Test definition loading and validation."""

    def test_load_all_succeeds(self):
        """All YAML files should load without errors."""
        TemplateDefinitionLoader.load_all()
        assert TemplateDefinitionLoader.is_loaded()

    def test_all_shipped_definitions_loaded(self):
        TemplateDefinitionLoader.load_all()
        assert set(TemplateDefinitionLoader.all_slugs()) == {
            'main-rental-contract',
            'power-of-attorney',
            'tariff-schedule',
            'responsibility-term',
            'deposit-receipt',
            'vehicle-monitoring',
        }

    def test_all_names_are_unique(self):
        TemplateDefinitionLoader.load_all()
        names = [d.name for d in TemplateDefinitionLoader.all()]
        assert len(names) == len(set(names))

    def test_main_contract_listed_first(self):
        TemplateDefinitionLoader.load_all()
        assert TemplateDefinitionLoader.all()[0].slug == 'main-rental-contract'

    def test_clear_resets_state(self):
        TemplateDefinitionLoader.load_all()
        TemplateDefinitionLoader.clear()
        assert not TemplateDefinitionLoader.is_loaded()
        assert TemplateDefinitionLoader.all() == []


class TestTemplateDefinitions:
    """Test each template definition individually."""

    @pytest.fixture(autouse=True)
    def load_definitions(self):
        TemplateDefinitionLoader.clear()
        TemplateDefinitionLoader.load_all()

    def test_main_contract_definition(self):
        definition = TemplateDefinitionLoader.get('main-rental-contract')
        assert definition.category == 'rental'
        assert definition.layout == LayoutKind.CLAUSES
        assert definition.is_default
        assert definition.number_prefix == 'CONT'
        assert len(definition.clauses) >= 5

    def test_clauses_sorted_by_order(self):
        definition = TemplateDefinitionLoader.get('main-rental-contract')
        order = [c.order_index for c in definition.clauses]
        assert order == sorted(order)

    def test_tariff_schedule_has_no_clauses(self):
        definition = TemplateDefinitionLoader.get('tariff-schedule')
        assert definition.layout == LayoutKind.TARIFF
        assert definition.clauses == ()
        assert definition.subtitle

    def test_annexes_use_simple_layout(self):
        for slug in ('power-of-attorney', 'responsibility-term',
                     'deposit-receipt', 'vehicle-monitoring'):
            definition = TemplateDefinitionLoader.get(slug)
            assert definition.layout == LayoutKind.SIMPLE, slug
            assert definition.category == 'annex', slug

    def test_every_placeholder_is_declared(self):
        for definition in TemplateDefinitionLoader.all():
            assert definition.undeclared_placeholders() == [], definition.slug

    def test_responsibility_term_needs_four_variables(self):
        definition = TemplateDefinitionLoader.get('responsibility-term')
        assert set(definition.variables) == {
            'client_name', 'client_cpf', 'contract_city', 'contract_date'
        }

    def test_content_carries_layout(self):
        definition = TemplateDefinitionLoader.get('tariff-schedule')
        content = definition.content()
        assert content['layout'] == 'tariff'
        assert content['subtitle'] == definition.subtitle

    def test_get_by_name(self):
        definition = TemplateDefinitionLoader.get_by_name('Anexo VI - Recebimento de Caução')
        assert definition.slug == 'deposit-receipt'
        assert TemplateDefinitionLoader.get_by_name('Anexo IX') is None

    def test_get_or_raise_unknown_slug(self):
        with pytest.raises(ValidationError) as exc_info:
            TemplateDefinitionLoader.get_or_raise('does-not-exist')
        assert 'does-not-exist' in str(exc_info.value)


class TestYamlValidation:
    """Validation of definitions before they are saved."""

    def test_valid_definition_has_no_errors(self):
        TemplateDefinitionLoader.load_all()
        assert TemplateDefinitionLoader.validate_yaml_content(VALID_DEFINITION) == []

    def test_unknown_layout_rejected(self):
        content = VALID_DEFINITION.replace('layout: simple', 'layout: fancy')
        errors = TemplateDefinitionLoader.validate_yaml_content(content)
        assert errors and 'layout' in errors[0]

    def test_bad_prefix_rejected(self):
        content = VALID_DEFINITION.replace('number_prefix: CHECK', 'number_prefix: check-1')
        assert TemplateDefinitionLoader.validate_yaml_content(content)

    def test_duplicate_clause_order_rejected(self):
        content = VALID_DEFINITION + """
  - clause_number: 2
    title: "Outro"
    order_index: 1
    content: "Texto."
"""
        errors = TemplateDefinitionLoader.validate_yaml_content(content)
        assert errors and 'order_index' in errors[0]

    def test_simple_layout_without_clauses_rejected(self):
        content = VALID_DEFINITION.split('clauses:')[0] + 'clauses: []\n'
        errors = TemplateDefinitionLoader.validate_yaml_content(content)
        assert errors and 'at least one clause' in errors[0]

    def test_name_clash_with_loaded_definition(self):
        TemplateDefinitionLoader.load_all()
        content = VALID_DEFINITION.replace(
            'Anexo VIII - Checklist de Entrega', 'Anexo VI - Recebimento de Caução'
        )
        errors = TemplateDefinitionLoader.validate_yaml_content(content)
        assert errors and 'already used' in errors[0]

    def test_syntax_error_reported(self):
        errors = TemplateDefinitionLoader.validate_yaml_content("slug: [unclosed")
        assert errors and 'YAML syntax error' in errors[0]

    def test_empty_content_reported(self):
        assert TemplateDefinitionLoader.validate_yaml_content("") == ["Empty template definition"]


class TestLoadFailures:
    """Broken directories fail fast with every error listed."""

    def test_duplicate_slug_fails(self, tmp_path):
        (tmp_path / 'a.yml').write_text(VALID_DEFINITION, encoding='utf-8')
        (tmp_path / 'b.yml').write_text(
            VALID_DEFINITION.replace('Anexo VIII - Checklist de Entrega', 'Outro nome'),
            encoding='utf-8'
        )
        with pytest.raises(ConfigurationError) as exc_info:
            TemplateDefinitionLoader.load_all(tmp_path)
        assert "Duplicate slug 'checklist'" in str(exc_info.value)
        assert not TemplateDefinitionLoader.is_loaded()

    def test_duplicate_name_fails(self, tmp_path):
        (tmp_path / 'a.yml').write_text(VALID_DEFINITION, encoding='utf-8')
        (tmp_path / 'b.yml').write_text(
            VALID_DEFINITION.replace('slug: checklist', 'slug: checklist-two'),
            encoding='utf-8'
        )
        with pytest.raises(ConfigurationError) as exc_info:
            TemplateDefinitionLoader.load_all(tmp_path)
        assert 'Duplicate template name' in str(exc_info.value)

    def test_all_errors_listed(self, tmp_path):
        (tmp_path / 'a.yml').write_text("slug: only-a-slug\n", encoding='utf-8')
        (tmp_path / 'b.yml').write_text("name: [broken", encoding='utf-8')
        with pytest.raises(ConfigurationError) as exc_info:
            TemplateDefinitionLoader.load_all(tmp_path)
        message = str(exc_info.value)
        assert 'a.yml' in message
        assert 'b.yml' in message

    def test_undeclared_placeholder_is_only_a_warning(self, tmp_path, caplog):
        (tmp_path / 'a.yml').write_text(
            VALID_DEFINITION.replace('{{client_name}}', '{{client_name}} {{client_cpf}}'),
            encoding='utf-8'
        )
        TemplateDefinitionLoader.load_all(tmp_path)
        assert TemplateDefinitionLoader.is_loaded()
        assert 'client_cpf' in caplog.text


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
