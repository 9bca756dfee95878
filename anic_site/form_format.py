from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from anic_site.models import FormKind

CADASTRO_HEADER = "Nova Ficha Cadastral enviada:"
CONTATO_HEADER = "Nova mensagem de contato:"

CADASTRO_FIELDS: tuple[tuple[str, str], ...] = (
    ("nome_completo", "Nome Completo"),
    ("cpf", "CPF"),
    ("rg", "RG"),
    ("data_nascimento", "Data de Nascimento"),
    ("email", "E-mail"),
    ("telefone", "Telefone"),
    ("endereco", "Endereço"),
    ("estado", "Estado"),
    ("instituicao_formacao", "Instituição de Formação"),
    ("ano_conclusao", "Ano de Conclusão"),
    ("tempo_experiencia", "Tempo de Experiência"),
    ("observacoes", "Observações"),
)

CONTATO_FIELDS: tuple[tuple[str, str], ...] = (
    ("nome", "Nome"),
    ("email", "E-mail"),
    ("assunto", "Assunto"),
)

SUBJECTS: dict[FormKind, str] = {
    FormKind.CADASTRO: "Cadastro ANIC - Ficha Cadastral",
    FormKind.CONTATO: "Contato ANIC - Mensagem",
}


def render_value(value: Any) -> str:
    if not value:
        return ""
    if isinstance(value, bool):
        return "true"
    if isinstance(value, (list, tuple)):
        return ",".join(render_value(item) for item in value)
    return str(value)


def format_cadastro_body(fields: Mapping[str, Any]) -> str:
    lines = [CADASTRO_HEADER]
    for key, label in CADASTRO_FIELDS:
        lines.append(f"{label}: {render_value(fields.get(key))}")
    return "\n".join(lines)


def format_contato_body(fields: Mapping[str, Any]) -> str:
    lines = [CONTATO_HEADER]
    for key, label in CONTATO_FIELDS:
        lines.append(f"{label}: {render_value(fields.get(key))}")
    # message text goes below its label, unprefixed
    lines.append("Mensagem:")
    lines.append(render_value(fields.get("mensagem")))
    return "\n".join(lines)


def format_body(kind: FormKind, fields: Mapping[str, Any]) -> str:
    if kind is FormKind.CADASTRO:
        return format_cadastro_body(fields)
    return format_contato_body(fields)


def subject_for(kind: FormKind) -> str:
    return SUBJECTS[kind]
