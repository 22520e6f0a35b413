from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Mapping

from sqlalchemy import and_, case
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from autonomia_api.core.errors import NotFoundError, ValidationError
from autonomia_api.models.account import Account
from autonomia_api.models.parameter import (
    AccountParameter,
    AccountParameterStandard,
    ProductParameter,
    ProductParameterStandard,
)
from autonomia_api.models.product import Product
from autonomia_api.services.step_result import StepResult

logger = logging.getLogger(__name__)

ACCOUNT_SCOPE = "account"
PRODUCT_SCOPE = "product"

# Nomes com tratamento dedicado; ficam fora do seed em lote.
SPECIAL_PARAMETER_NAMES = frozenset({"metadata", "knowledgeBase", "document"})

DOCUMENT_PARAMETER = "document"
KNOWLEDGE_BASE_PARAMETER = "knowledgeBase"

_SCOPES = {
    ACCOUNT_SCOPE: (AccountParameter, AccountParameterStandard, "account_id", Account),
    PRODUCT_SCOPE: (ProductParameter, ProductParameterStandard, "product_id", Product),
}


@dataclass(frozen=True)
class StandardParameter:
    name: str
    default_value: str | None = None
    visible_onboarding: bool = True
    short_description: str | None = None
    help_text: str | None = None

    def resolve_value(self, supplied: Mapping[str, Any]) -> str:
        raw = supplied.get(self.name)
        if raw is not None and str(raw) != "":
            return _as_text(raw)
        if self.default_value is None:
            return ""
        return str(self.default_value)


class StandardParameterCatalog:
    """Read-mostly catalog of expected parameter names for one scope."""

    def __init__(self, entries: Iterable[StandardParameter]) -> None:
        self._entries: dict[str, StandardParameter] = {entry.name: entry for entry in entries}

    @classmethod
    def load(cls, db: Session, scope: str = ACCOUNT_SCOPE) -> "StandardParameterCatalog":
        _, standard_model, _, _ = _scope_models(scope)
        rows = db.query(standard_model).order_by(standard_model.name).all()
        return cls(
            StandardParameter(
                name=row.name,
                default_value=row.default_value,
                visible_onboarding=bool(row.visible_onboarding),
                short_description=row.short_description,
                help_text=row.help_text,
            )
            for row in rows
        )

    def __iter__(self) -> Iterator[StandardParameter]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def get(self, name: str) -> StandardParameter | None:
        return self._entries.get(name)

    def seedable(self) -> list[StandardParameter]:
        return [entry for entry in self if entry.name not in SPECIAL_PARAMETER_NAMES]


def _scope_models(scope: str):
    try:
        return _SCOPES[scope]
    except KeyError as exc:
        raise ValidationError(f"Escopo de parâmetro inválido: {scope}") from exc


def _as_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def _parameter_to_dict(row) -> dict[str, Any]:
    return {
        "id": row.id,
        "name": row.name,
        "value": row.value,
        "short_description": row.short_description,
        "help_text": row.help_text,
        "default_value": row.default_value,
    }


def get_parameters(
    db: Session,
    scope: str,
    scope_id: int,
    *,
    onboarding_visible_only: bool = False,
) -> list[dict[str, Any]]:
    parameter_model, standard_model, owner_column, _ = _scope_models(scope)
    query = db.query(parameter_model).filter(getattr(parameter_model, owner_column) == scope_id)

    if onboarding_visible_only:
        query = query.outerjoin(standard_model, parameter_model.name == standard_model.name).filter(
            standard_model.visible_onboarding.is_(True)
        )

    rows = query.order_by(
        case((parameter_model.short_description.is_(None), 1), else_=0),
        parameter_model.short_description,
        parameter_model.name,
    ).all()
    return [_parameter_to_dict(row) for row in rows]


def parameters_as_mapping(rows: Iterable[Mapping[str, Any]]) -> dict[str, Any]:
    return {row["name"]: row["value"] for row in rows}


def get_parameter_value(db: Session, scope: str, scope_id: int, name: str) -> str | None:
    parameter_model, _, owner_column, _ = _scope_models(scope)
    row = (
        db.query(parameter_model.value)
        .filter(and_(getattr(parameter_model, owner_column) == scope_id, parameter_model.name == name))
        .first()
    )
    return row[0] if row else None


def seed_standard_parameters(
    db: Session,
    account_id: int,
    supplied: Mapping[str, Any] | None,
    *,
    catalog: StandardParameterCatalog | None = None,
) -> StepResult:
    """Create one account parameter per catalog entry.

    Runs inside a SAVEPOINT: on failure the partial insert is rolled back,
    logged, and reported as a failed step while the outer transaction stays
    usable.
    """
    supplied = supplied or {}
    try:
        with db.begin_nested():
            catalog = catalog or StandardParameterCatalog.load(db, ACCOUNT_SCOPE)
            entries = catalog.seedable()
            existing = {
                row[0]
                for row in db.query(AccountParameter.name).filter(AccountParameter.account_id == account_id).all()
            }
            created = 0
            for entry in entries:
                if entry.name in existing:
                    continue
                db.add(
                    AccountParameter(
                        account_id=account_id,
                        name=entry.name,
                        value=entry.resolve_value(supplied),
                        short_description=entry.short_description,
                        help_text=entry.help_text,
                        default_value=entry.default_value,
                    )
                )
                created += 1
            db.flush()
    except SQLAlchemyError as exc:
        logger.exception("standard parameter seeding failed account_id=%s", account_id)
        return StepResult.failure("standard_parameters", str(exc))

    logger.info("standard parameters seeded account_id=%s created=%s", account_id, created)
    return StepResult.success("standard_parameters", count=created)


def _insert_single_parameter(db: Session, step_name: str, parameter: AccountParameter) -> StepResult:
    try:
        with db.begin_nested():
            db.add(parameter)
            db.flush()
    except SQLAlchemyError as exc:
        logger.exception("%s insert failed account_id=%s", step_name, parameter.account_id)
        return StepResult.failure(step_name, str(exc))
    return StepResult.success(step_name, count=1)


def create_document_parameter(db: Session, account_id: int, document: Any) -> StepResult:
    if document is None or not str(document).strip():
        return StepResult.skipped("document_parameter", "documento não informado")

    return _insert_single_parameter(
        db,
        "document_parameter",
        AccountParameter(
            account_id=account_id,
            name=DOCUMENT_PARAMETER,
            value=str(document).strip(),
            short_description="Documento",
            help_text="Documento (CPF/CNPJ) associado à conta.",
        ),
    )


def create_knowledge_base_parameter(db: Session, account_id: int, metadata: Any) -> StepResult:
    if metadata is None:
        return StepResult.skipped("knowledge_base_parameter", "metadata não informado")

    if isinstance(metadata, str):
        text = metadata.strip()
        if not text.startswith("{"):
            logger.info("metadata is not a JSON object; knowledgeBase skipped account_id=%s", account_id)
            return StepResult.skipped("knowledge_base_parameter", "metadata não é JSON")
        try:
            json.loads(text)
        except json.JSONDecodeError:
            logger.warning("metadata looks like JSON but does not parse; knowledgeBase skipped account_id=%s", account_id)
            return StepResult.skipped("knowledge_base_parameter", "metadata com JSON inválido")
        value = text
    elif isinstance(metadata, (dict, list)):
        value = json.dumps(metadata, ensure_ascii=False)
    else:
        logger.info("unsupported metadata type=%s; knowledgeBase skipped", type(metadata).__name__)
        return StepResult.skipped("knowledge_base_parameter", "metadata em formato não suportado")

    return _insert_single_parameter(
        db,
        "knowledge_base_parameter",
        AccountParameter(
            account_id=account_id,
            name=KNOWLEDGE_BASE_PARAMETER,
            value=value,
            short_description="Base de Conhecimento",
        ),
    )


def upsert_parameter(
    db: Session,
    scope: str,
    scope_id: int,
    name: str,
    value: Any,
    *,
    short_description: str | None = None,
    help_text: str | None = None,
    default_value: str | None = None,
) -> tuple[dict[str, Any], bool]:
    parameter_model, standard_model, owner_column, owner_model = _scope_models(scope)
    name = (name or "").strip()
    if not name:
        raise ValidationError("name é obrigatório")

    if db.get(owner_model, scope_id) is None:
        raise NotFoundError(f"{scope.capitalize()} {scope_id} não encontrado")

    row = (
        db.query(parameter_model)
        .filter(getattr(parameter_model, owner_column) == scope_id, parameter_model.name == name)
        .first()
    )
    text_value = None if value is None else _as_text(value)
    created = row is None
    if created:
        standard = db.query(standard_model).filter(standard_model.name == name).first()
        row = parameter_model(
            name=name,
            value=text_value,
            short_description=short_description or (standard.short_description if standard else None),
            help_text=help_text or (standard.help_text if standard else None),
            default_value=default_value if default_value is not None else (standard.default_value if standard else None),
        )
        setattr(row, owner_column, scope_id)
        db.add(row)
    else:
        row.value = text_value
        if short_description is not None:
            row.short_description = short_description
        if help_text is not None:
            row.help_text = help_text
        if default_value is not None:
            row.default_value = default_value

    db.commit()
    db.refresh(row)
    logger.info("%s parameter %s scope_id=%s name=%s", scope, "created" if created else "updated", scope_id, name)
    return _parameter_to_dict(row), created
