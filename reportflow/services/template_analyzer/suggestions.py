"""Header/label text to canonical field name lookup."""

from __future__ import annotations

from typing import Dict, Optional, Tuple

# Declaration order is part of the contract: ambiguous text resolves to the
# earliest canonical field whose synonym matches.
FIELD_SYNONYMS: Dict[str, Tuple[str, ...]] = {
    "full_name": ("nome", "name", "nome completo", "full name", "usuario", "user"),
    "email": ("email", "e-mail", "mail", "correio"),
    "student_name": ("aluno", "student", "nome do aluno", "student name"),
    "role": ("perfil", "role", "tipo", "type", "função", "cargo"),
    "status": ("status", "estado", "state", "situação", "situacao"),
    "created_at": ("criado em", "created at", "data criação", "data", "date", "cadastro", "registro"),
    "phone": ("telefone", "phone", "celular", "contato", "tel"),
    "cpf": ("cpf", "documento", "document"),
    "enrollment_date": ("matricula", "enrollment", "data matricula", "enrollment date"),
    "course": ("curso", "course"),
    "course_name": ("nome do curso", "course name", "curso"),
    "category": ("categoria", "category", "tipo de curso"),
    "institution": ("instituição", "instituicao", "institution", "escola"),
    "coordination": ("coordenação", "coordenacao", "coordination", "coordenador"),
    "approval": ("aprovação", "aprovacao", "approval", "aprovado"),
    "last_access": ("último acesso", "ultimo acesso", "last access", "acesso"),
    "tests_grade": ("avaliação dos testes", "avaliacao dos testes", "nota testes", "tests grade"),
    "tcc_grade": ("avaliação do tcc", "avaliacao do tcc", "nota tcc", "tcc grade", "tcc"),
    "general_average": ("média geral", "media geral", "general average", "média", "media"),
    "code": ("código", "codigo", "code"),
    "name": ("nome", "name", "módulos", "modulos", "disciplinas"),
    "workload": ("carga horária", "carga horaria", "workload", "horas"),
    "completion_date": ("data da finalização", "data finalizacao", "completion date", "finalização", "conclusão"),
    "score": ("pontuação", "pontuacao", "score", "nota"),
    "grade": ("nota", "grade", "pontuação", "score"),
    "progress": ("progresso", "progress", "percentual", "percentage"),
}


def _normalize(text: str) -> str:
    return text.strip().lower()


def suggest_field(text: Optional[str]) -> Optional[str]:
    """Return the canonical field for a column header or label, or None.

    A synonym matches when it is contained in the normalized text or the
    normalized text is contained in it.
    """

    if text is None:
        return None
    normalized = _normalize(str(text))
    if not normalized:
        return None
    for field_name, synonyms in FIELD_SYNONYMS.items():
        for synonym in synonyms:
            if synonym in normalized or normalized in synonym:
                return field_name
    return None


__all__ = ["FIELD_SYNONYMS", "suggest_field"]
