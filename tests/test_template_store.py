"""
Tests for TemplateStore: seeding, lookups, creation and repair of
empty templates.
"""

import pytest
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from models import db, DocumentTemplate, DocumentType, TemplateClause
from seed_templates import seed_database
from services.contracts import (
    MissingDocumentType,
    NotFound,
    TemplateDefinitionLoader,
    TemplateStore,
    ValidationError,
)

DEPOSIT_RECEIPT = 'Anexo VI - Recebimento de Caução'
TARIFF = 'Anexo IV - Tarifário'


def _expected_clause_total():
    return sum(len(d.clauses) for d in TemplateDefinitionLoader.all())


class TestSeedDefinitions:
    """Seeding from the canonical YAML definitions."""

    def test_first_seed_creates_everything(self, app):
        summary = TemplateStore.seed_definitions()
        assert summary['types_created'] == 2
        assert summary['templates_created'] == 6
        assert summary['clauses_created'] == _expected_clause_total()
        assert DocumentTemplate.query.count() == 6

    def test_seed_is_idempotent(self, app):
        TemplateStore.seed_definitions()
        clause_count = TemplateClause.query.count()

        summary = TemplateStore.seed_definitions()
        assert summary['types_created'] == 0
        assert summary['templates_created'] == 0
        assert summary['clauses_created'] == 0
        assert summary['templates_existing'] == 6
        assert TemplateClause.query.count() == clause_count

    def test_seed_repairs_empty_template(self, app):
        TemplateStore.seed_definitions()
        template = DocumentTemplate.query.filter_by(name=DEPOSIT_RECEIPT).first()
        TemplateClause.query.filter_by(template_id=template.id).delete()
        db.session.commit()

        summary = TemplateStore.seed_definitions()
        assert summary['templates_repaired'] == 1
        expected = len(TemplateDefinitionLoader.get('deposit-receipt').clauses)
        assert len(TemplateStore.list_clauses(template.id)) == expected

    def test_tariff_is_never_repaired(self, app):
        TemplateStore.seed_definitions()
        summary = TemplateStore.seed_definitions()
        assert summary['templates_repaired'] == 0
        tariff = TemplateStore.get_template_by_name(TARIFF)
        assert TemplateStore.list_clauses(tariff.id) == []

    def test_seeded_content_carries_layout(self, seeded):
        tariff = TemplateStore.get_template_by_name(TARIFF)
        assert tariff.layout == 'tariff'
        assert tariff.content['subtitle']
        assert tariff.number_prefix == 'TARIFF'

    def test_seed_command(self, app):
        result = app.test_cli_runner().invoke(args=['seed-templates'])
        assert result.exit_code == 0
        assert '2 type(s), 6 template(s)' in result.output

    def test_seed_script(self, app):
        summary = seed_database(app)
        assert summary['templates_created'] == 6


class TestQueries:

    def test_default_rental_template(self, seeded):
        template = TemplateStore.get_default_template('rental')
        assert template.name == 'Contrato Principal de Locação'
        assert template.document_type.category == 'rental'

    def test_no_default_annex(self, seeded):
        assert TemplateStore.get_default_template('annex') is None

    def test_inactive_default_ignored(self, seeded):
        template = TemplateStore.get_default_template('rental')
        template.is_active = False
        db.session.commit()
        assert TemplateStore.get_default_template('rental') is None

    def test_list_document_types(self, seeded):
        names = [t.name for t in TemplateStore.list_document_types()]
        assert names == ['Anexos de Locação', 'Contrato de Locação']

    def test_list_templates_by_type(self, seeded):
        annex_type = DocumentType.query.filter_by(category='annex').first()
        names = [t.name for t in TemplateStore.list_templates_by_type(annex_type.id)]
        assert len(names) == 5
        assert names == sorted(names)

    def test_clauses_in_render_order(self, seeded):
        template = TemplateStore.get_default_template('rental')
        clauses = TemplateStore.list_clauses(template.id)
        order = [c.order_index for c in clauses]
        assert order == sorted(order)
        assert len(clauses) == len(TemplateDefinitionLoader.get('main-rental-contract').clauses)

    def test_get_template_or_raise(self, app):
        with pytest.raises(NotFound):
            TemplateStore.get_template_or_raise(9999)


class TestCreation:
    """Explicit creation of types, templates and clauses."""

    def test_create_template_under_type(self, app):
        doc_type = TemplateStore.create_document_type('Aditivos', 'amendment')
        template = TemplateStore.create_template(
            doc_type.id, 'Aditivo de Prazo', '1.0', 'ADITIVO DE PRAZO',
            {'layout': 'simple'}, ['client_name']
        )
        assert template.id is not None
        assert template.document_type.name == 'Aditivos'

    def test_duplicate_type_rejected(self, app):
        TemplateStore.create_document_type('Aditivos', 'amendment')
        with pytest.raises(ValidationError):
            TemplateStore.create_document_type('Aditivos', 'amendment')

    def test_template_needs_existing_type(self, app):
        with pytest.raises(NotFound):
            TemplateStore.create_template(42, 'Sem tipo', '1.0', 'SEM TIPO', {}, [])

    def test_duplicate_template_name_rejected(self, seeded):
        doc_type = DocumentType.query.first()
        with pytest.raises(ValidationError):
            TemplateStore.create_template(doc_type.id, DEPOSIT_RECEIPT, '2.0', 'X', {}, [])

    def test_clauses_ordered_by_index_not_insertion(self, app):
        doc_type = TemplateStore.create_document_type('Aditivos', 'amendment')
        template = TemplateStore.create_template(
            doc_type.id, 'Aditivo', '1.0', 'ADITIVO', {'layout': 'simple'}, []
        )
        TemplateStore.create_clause(template.id, '2', 'Segunda', 'B', 2, [])
        TemplateStore.create_clause(template.id, '1', 'Primeira', 'A', 1, [])
        titles = [c.title for c in TemplateStore.list_clauses(template.id)]
        assert titles == ['Primeira', 'Segunda']

    def test_clause_needs_existing_template(self, app):
        with pytest.raises(NotFound):
            TemplateStore.create_clause(9999, '1', 'T', 'C', 1, [])


class TestGetOrCreateByName:
    """Request-time lookup that only falls back to the definitions."""

    def test_existing_template_id_returned(self, seeded):
        template = TemplateStore.get_template_by_name(DEPOSIT_RECEIPT)
        assert TemplateStore.get_or_create_by_name(DEPOSIT_RECEIPT) == template.id
        assert DocumentTemplate.query.filter_by(name=DEPOSIT_RECEIPT).count() == 1

    def test_empty_template_repaired(self, seeded):
        template = TemplateStore.get_template_by_name(DEPOSIT_RECEIPT)
        TemplateClause.query.filter_by(template_id=template.id).delete()
        db.session.commit()

        assert TemplateStore.get_or_create_by_name(DEPOSIT_RECEIPT) == template.id
        assert len(TemplateStore.list_clauses(template.id)) > 0

    def test_created_under_matching_category(self, app):
        TemplateStore.create_document_type('Contrato de Locação', 'rental')
        annex_type = TemplateStore.create_document_type('Anexos de Locação', 'annex')

        template_id = TemplateStore.get_or_create_by_name(DEPOSIT_RECEIPT)
        template = TemplateStore.get_template_by_id(template_id)
        assert template.document_type_id == annex_type.id
        expected = len(TemplateDefinitionLoader.get('deposit-receipt').clauses)
        assert len(TemplateStore.list_clauses(template_id)) == expected

    def test_falls_back_to_first_type(self, app):
        rental_type = TemplateStore.create_document_type('Contrato de Locação', 'rental')
        template_id = TemplateStore.get_or_create_by_name(DEPOSIT_RECEIPT)
        assert TemplateStore.get_template_by_id(template_id).document_type_id == rental_type.id

    def test_no_document_type(self, app):
        with pytest.raises(MissingDocumentType):
            TemplateStore.get_or_create_by_name(DEPOSIT_RECEIPT)

    def test_unknown_name(self, seeded):
        with pytest.raises(NotFound):
            TemplateStore.get_or_create_by_name('Anexo IX - Inexistente')

    def test_concurrent_creator_wins(self, app, monkeypatch):
        """Another request commits the same name between lookup and insert."""
        annex_type = TemplateStore.create_document_type('Anexos de Locação', 'annex')
        load_definition = TemplateDefinitionLoader.get_by_name
        winner_ids = []

        def lookup_while_another_request_commits(name):
            winner = DocumentTemplate(
                document_type_id=annex_type.id, name=name, version='1.0',
                title='ANEXO VI', content={}, variables=[],
            )
            db.session.add(winner)
            db.session.commit()
            winner_ids.append(winner.id)
            return load_definition(name)

        monkeypatch.setattr(TemplateDefinitionLoader, 'get_by_name',
                            staticmethod(lookup_while_another_request_commits))

        template_id = TemplateStore.get_or_create_by_name(DEPOSIT_RECEIPT)
        assert template_id == winner_ids[0]
        assert DocumentTemplate.query.filter_by(name=DEPOSIT_RECEIPT).count() == 1


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
