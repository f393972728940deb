"""
Document Layouts

The three ways a template is laid out on paper:

    clauses - main contract: title, party blocks, numbered clauses,
              two signatures
    simple  - annexes: title, a rule, clause bodies only
    tariff  - Anexo IV: identification, fixed price table and terms,
              one signature

Each builder receives already-substituted clause text and returns a
RenderedDocument. Fixed tariff wording lives in the constants below.
Fixed wording is filled with "" for names missing from the variables;
only template text is subject to strict mode.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .layout import (
    BOLD_FONT, BODY_FONT, CONTENT_WIDTH_MM, LINE_HEIGHT_MM, MARGIN_MM,
    SUBTITLE_SIZE, TITLE_SIZE, PageWriter,
)
from .placeholders import find_placeholders, substitute
from .types import LayoutKind, RenderedDocument

logger = logging.getLogger(__name__)

# (title, body) after substitution
ClauseText = Tuple[str, str]


# =============================================================================
# PARTY BLOCKS (clauses layout)
# =============================================================================

LESSOR_BLOCK = (
    "{{franchisee_name}}, pessoa jurídica de direito privado, inscrita no CNPJ sob "
    "nº {{franchisee_cnpj}}, com sede na {{franchisee_address}}, nº {{franchisee_number}}, "
    "bairro {{franchisee_neighborhood}}, {{franchisee_city}}/{{franchisee_state}}, "
    "CEP {{franchisee_cep}}, doravante denominada LOCADORA."
)

LESSEE_BLOCK = (
    "{{client_name}}, inscrito(a) no CPF sob nº {{client_cpf}}, portador(a) da CNH "
    "nº {{client_cnh}}, residente e domiciliado(a) na {{client_address}}, "
    "nº {{client_number}}, bairro {{client_neighborhood}}, {{client_city}}/{{client_state}}, "
    "CEP {{client_cep}}, doravante denominado(a) LOCATÁRIO."
)


# =============================================================================
# TARIFF CONTENT (Anexo IV)
# =============================================================================

TARIFF_IDENTIFICATION = (
    "LOCATÁRIO: {{client_name}}, CPF nº {{client_cpf}}, residente na {{client_address}}, "
    "nº {{client_number}}, bairro {{client_neighborhood}}, {{client_city}}/{{client_state}}, "
    "CEP {{client_cep}}. VEÍCULO: {{motorcycle_brand}} {{motorcycle_model}}, "
    "placa {{motorcycle_plate}}."
)

TARIFF_FUEL = (
    "COMBUSTÍVEL: O VEÍCULO deve ser devolvido com o mesmo nível de combustível "
    "registrado na retirada. A diferença será cobrada por litro, conforme tabela abaixo, "
    "acrescida da taxa de serviço de abastecimento."
)

TARIFF_CLEANING = (
    "LIMPEZA: O VEÍCULO deve ser devolvido em condições normais de limpeza. Sujeira "
    "excessiva, odores ou resíduos que exijam lavagem especial serão cobrados conforme "
    "tabela abaixo."
)

TARIFF_TABLE_HEADER = ("SERVIÇO / PENALIDADE", "VALOR")

TARIFF_ROWS = [
    ("Diária adicional por atraso na devolução", "Valor da diária vigente"),
    ("Bloqueio por inadimplência (taxa de bloqueio e desbloqueio remoto)", "R$ 50,00"),
    ("Multa por atraso no pagamento", "2% sobre o valor devido"),
    ("Juros de mora", "1% ao mês, pro rata die"),
    ("Litro de combustível faltante", "R$ 8,00"),
    ("Taxa de serviço de abastecimento", "R$ 20,00"),
    ("Lavagem simples", "R$ 30,00"),
    ("Lavagem especial (sujeira excessiva)", "R$ 80,00"),
    ("Recolhimento do VEÍCULO (guincho) por descumprimento contratual", "R$ 250,00"),
    ("Perda ou dano da chave", "R$ 150,00"),
    ("Perda ou dano do documento do VEÍCULO (CRLV)", "R$ 200,00"),
    ("Troca de placa por dano ou perda", "R$ 300,00"),
    ("Retrovisor danificado (unidade)", "R$ 60,00"),
    ("Manete de freio ou embreagem danificado", "R$ 45,00"),
    ("Dispositivo de rastreamento violado ou removido", "R$ 800,00"),
    ("Taxa administrativa por infração de trânsito", "R$ 40,00 por auto"),
    ("Quilometragem excedente ao plano", "R$ 0,30 por km"),
    ("Circulação fora da área autorizada", "R$ 200,00 por ocorrência"),
]

TARIFF_COLUMN_WIDTHS = [125, 45]

TARIFF_CLOSING = [
    "Os valores desta tabela poderão ser reajustados anualmente, mediante comunicação "
    "prévia ao LOCATÁRIO, e serão cobrados sem prejuízo da reparação integral dos danos "
    "apurados.",
    "Os valores de peças e serviços não listados serão cobrados conforme orçamento de "
    "oficina indicada pela LOCADORA, acrescidos de taxa administrativa de 10% (dez por cento).",
    "O LOCATÁRIO declara ter lido e compreendido a presente tabela, que integra o Contrato "
    "de Locação para todos os fins de direito.",
]

TARIFF_DATE_LINE = "{{contract_city}}, {{contract_date}}"


def _fill_blank(text: str, variables: Mapping[str, Any]) -> str:
    """Substitute, treating names absent from `variables` as empty."""
    values = {name: variables.get(name, '') for name in find_placeholders(text)}
    return substitute(text, values, strict=False)


# =============================================================================
# LAYOUT SELECTION
# =============================================================================

def select_layout(
    content: Optional[Dict[str, Any]],
    template_name: str = '',
    slug: str = None,
    category: str = None
) -> LayoutKind:
    """
    Pick the layout for a template.

    An explicit content['layout'] wins; otherwise the tariff schedule is
    recognised by name, rental contracts use clauses and everything else
    the simple layout.
    """
    explicit = (content or {}).get('layout') if isinstance(content, dict) else None
    if explicit:
        try:
            return LayoutKind(explicit)
        except ValueError:
            logger.warning(f"Unknown layout '{explicit}' on '{template_name}', inferring instead")

    haystack = f"{template_name or ''} {slug or ''}".lower()
    if 'tarif' in haystack or 'anexo iv ' in f"{haystack} ":
        return LayoutKind.TARIFF
    if category == 'rental':
        return LayoutKind.CLAUSES
    return LayoutKind.SIMPLE


# =============================================================================
# BUILDERS
# =============================================================================

def build_clauses_layout(
    title: str,
    clauses: List[ClauseText],
    variables: Mapping[str, Any]
) -> RenderedDocument:
    writer = PageWriter(title, LayoutKind.CLAUSES)
    state = writer.start()

    state = writer.centered(state, title, font=BOLD_FONT, size=TITLE_SIZE, line_height=7)
    contract_number = variables.get('contract_number')
    if contract_number:
        state = writer.centered(state, f"Contrato nº {contract_number}",
                                font=BODY_FONT, size=SUBTITLE_SIZE)
    state = writer.gap(state)

    state = writer.line(state, "LOCADORA", font=BOLD_FONT)
    state = writer.paragraph(state, _fill_blank(LESSOR_BLOCK, variables))
    state = writer.gap(state, LINE_HEIGHT_MM / 2)
    state = writer.line(state, "LOCATÁRIO", font=BOLD_FONT)
    state = writer.paragraph(state, _fill_blank(LESSEE_BLOCK, variables))
    state = writer.gap(state)

    for clause_title, body in clauses:
        if clause_title:
            state = writer.paragraph(state, clause_title, font=BOLD_FONT)
        state = writer.paragraph(state, body)
        state = writer.gap(state, LINE_HEIGHT_MM / 2)

    state = writer.gap(state)
    lessor = variables.get('franchisee_name') or ''
    lessee = variables.get('client_name') or ''
    writer.signature(state, ["LOCADORA", lessor], x=MARGIN_MM, width=75)
    writer.signature(state, ["LOCATÁRIO", lessee], x=MARGIN_MM + CONTENT_WIDTH_MM - 75, width=75)
    return writer.finish()


def build_simple_layout(
    title: str,
    clauses: List[ClauseText],
    variables: Mapping[str, Any]
) -> RenderedDocument:
    writer = PageWriter(title, LayoutKind.SIMPLE)
    state = writer.start()

    state = writer.centered(state, title, font=BOLD_FONT, size=TITLE_SIZE, line_height=7)
    state = writer.gap(state, 2)
    state = writer.rule(state)
    state = writer.gap(state, 3)

    for _, body in clauses:
        state = writer.paragraph(state, body)
        state = writer.gap(state, LINE_HEIGHT_MM / 2)

    return writer.finish()


def build_tariff_layout(
    title: str,
    subtitle: Optional[str],
    variables: Mapping[str, Any]
) -> RenderedDocument:
    writer = PageWriter(title, LayoutKind.TARIFF)
    state = writer.start()

    state = writer.centered(state, title, font=BOLD_FONT, size=TITLE_SIZE, line_height=7)
    if subtitle:
        state = writer.centered(state, subtitle, font=BOLD_FONT, size=SUBTITLE_SIZE)
    state = writer.gap(state)

    state = writer.paragraph(state, _fill_blank(TARIFF_IDENTIFICATION, variables))
    state = writer.gap(state, LINE_HEIGHT_MM / 2)
    state = writer.paragraph(state, TARIFF_FUEL)
    state = writer.gap(state, LINE_HEIGHT_MM / 2)
    state = writer.paragraph(state, TARIFF_CLEANING)
    state = writer.gap(state)

    state = writer.table_row(state, list(TARIFF_TABLE_HEADER), TARIFF_COLUMN_WIDTHS,
                             shaded=True, font=BOLD_FONT)
    for index, (service, price) in enumerate(TARIFF_ROWS):
        state = writer.table_row(state, [service, price], TARIFF_COLUMN_WIDTHS,
                                 shaded=index % 2 == 1)
    state = writer.gap(state)

    for paragraph in TARIFF_CLOSING:
        state = writer.paragraph(state, paragraph)
        state = writer.gap(state, LINE_HEIGHT_MM / 2)

    state = writer.gap(state)
    state = writer.line(state, _fill_blank(TARIFF_DATE_LINE, variables))
    state = writer.gap(state)
    writer.signature(state, ["LOCATÁRIO", variables.get('client_name') or ''], x=MARGIN_MM, width=80)
    return writer.finish()
