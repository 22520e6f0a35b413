from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from autonomia_api.core.config import Settings
from autonomia_api.core.errors import NotFoundError, ValidationError
from autonomia_api.integrations.partner_client import PartnerClient
from autonomia_api.models.access import AccessProfile, User, UserAccessProfile, UserAccount
from autonomia_api.models.account import Account
from autonomia_api.models.contact import Contact
from autonomia_api.models.inbox import Inbox
from autonomia_api.models.product import Product
from autonomia_api.services import parameter_store
from autonomia_api.services.serializers import model_to_dict
from autonomia_api.services.step_result import StepResult

logger = logging.getLogger(__name__)

REQUIRED_TEXT_FIELDS = ("accountName", "accountEmail", "accountPhone")


@dataclass
class OnboardingOutcome:
    account: Account
    steps: list[StepResult] = field(default_factory=list)

    @property
    def warnings(self) -> list[str]:
        return [f"{step.name}: {step.detail}" for step in self.steps if not step.ok]

    @property
    def parameters_created(self) -> bool:
        return any(step.name == "standard_parameters" and step.ok for step in self.steps)

    def as_dict(self) -> dict[str, Any]:
        payload = model_to_dict(self.account)
        payload["parametersCreated"] = self.parameters_created
        payload["warnings"] = self.warnings
        payload["steps"] = [step.as_dict() for step in self.steps]
        return payload


def validate_onboarding_payload(payload: Mapping[str, Any]) -> None:
    if not payload.get("productId"):
        raise ValidationError("productId é obrigatório")
    for name in REQUIRED_TEXT_FIELDS:
        value = payload.get(name)
        if value is None or not str(value).strip():
            raise ValidationError(f"{name} é obrigatório")


class OnboardingOrchestrator:
    """Create an account and wire its defaults.

    Only the account insert is critical. Every following step runs in its
    own SAVEPOINT and reports a ``StepResult``; failures become warnings.
    """

    def __init__(self, settings: Settings, *, partner_client: PartnerClient | None = None) -> None:
        self.settings = settings
        self.partner_client = partner_client or PartnerClient.from_settings(settings)

    def run(self, db: Session, payload: Mapping[str, Any], claims_user_id: int | None = None) -> OnboardingOutcome:
        validate_onboarding_payload(payload)

        try:
            product_id = int(payload["productId"])
        except (TypeError, ValueError) as exc:
            raise ValidationError("productId inválido") from exc
        product = db.get(Product, product_id)
        if product is None:
            raise NotFoundError("Produto não encontrado")

        account_name = str(payload["accountName"]).strip()
        account_phone = str(payload["accountPhone"]).strip()
        document = payload.get("document")
        parameters = payload.get("parameters") or {}
        if not isinstance(parameters, Mapping):
            raise ValidationError("parameters deve ser um objeto")

        account = Account(
            name=account_name,
            social_name=account_name,
            email=str(payload["accountEmail"]).strip(),
            phone=account_phone,
            document=str(document).strip() if document else None,
            domain=payload.get("domain"),
            product_id=product.id,
            conversation_funnel_id=product.conversation_funnel_id,
        )
        db.add(account)
        db.flush()
        logger.info("account created account_id=%s product_id=%s", account.id, product.id)

        metadata = payload.get("metadata")
        if metadata is None:
            metadata = parameters.get("metadata")
        outcome = OnboardingOutcome(account=account)
        steps: list[tuple[str, Callable[[], StepResult]]] = [
            ("document_parameter", lambda: parameter_store.create_document_parameter(db, account.id, document)),
            ("inbox", lambda: self._create_inbox(db, account.id, account_phone)),
            (
                "knowledge_base_parameter",
                lambda: parameter_store.create_knowledge_base_parameter(db, account.id, metadata),
            ),
            ("standard_parameters", lambda: parameter_store.seed_standard_parameters(db, account.id, parameters)),
            ("partner_registration", lambda: self._register_partner(db, account, payload)),
            (
                "user_association",
                lambda: self._relate_user(db, account.id, claims_user_id, payload.get("user_id")),
            ),
        ]
        for name, step in steps:
            outcome.steps.append(self._run_step(name, step))

        db.commit()
        db.refresh(account)
        if outcome.warnings:
            logger.warning("onboarding finished with warnings account_id=%s warnings=%s", account.id, outcome.warnings)
        return outcome

    @staticmethod
    def _run_step(name: str, step: Callable[[], StepResult]) -> StepResult:
        try:
            result = step()
        except Exception as exc:  # any step failure becomes a warning on the created account
            logger.exception("onboarding step failed", extra={"step": name})
            return StepResult.failure(name, str(exc))
        if not result.ok:
            logger.warning("onboarding step reported failure detail=%s", result.detail, extra={"step": name})
        return result

    @staticmethod
    def _create_inbox(db: Session, account_id: int, account_phone: str) -> StepResult:
        if not account_phone:
            return StepResult.skipped("inbox", "telefone vazio")
        with db.begin_nested():
            exists = db.query(Inbox).filter(Inbox.account_id == account_id, Inbox.name == account_phone).first()
            if exists is not None:
                return StepResult.skipped("inbox", "inbox já existe")
            inbox = Inbox(account_id=account_id, name=account_phone)
            db.add(inbox)
            db.flush()
        return StepResult.success("inbox", inbox_id=inbox.id)

    def _register_partner(self, db: Session, account: Account, payload: Mapping[str, Any]) -> StepResult:
        if not self.partner_client.applies_to(account.product_id):
            return StepResult.skipped("partner_registration", "produto sem integração de parceiro")
        document = payload.get("document")
        if not document or not str(document).strip():
            return StepResult.skipped("partner_registration", "documento não informado")

        registration = self.partner_client.register(name=account.name, email=account.email, document=document)
        if not registration.external_code:
            return StepResult.failure("partner_registration", "parceiro não retornou código externo")

        with db.begin_nested():
            contact = Contact(
                name=account.name,
                phone=account.phone,
                contact_data={"email": account.email, "partner": registration.payload},
                external_code=registration.external_code,
                external_status=registration.external_status or "pending",
                account_id=account.id,
            )
            db.add(contact)
            db.flush()
        return StepResult.success(
            "partner_registration",
            contact_id=contact.id,
            external_code=registration.external_code,
        )

    def _relate_user(
        self,
        db: Session,
        account_id: int,
        claims_user_id: int | None,
        supplied_user_id: Any,
    ) -> StepResult:
        user_id = claims_user_id
        if user_id is None and supplied_user_id not in (None, ""):
            logger.info("claims user not resolved; using supplied user_id=%s", supplied_user_id)
            try:
                user_id = int(supplied_user_id)
            except (TypeError, ValueError):
                return StepResult.failure("user_association", "user_id inválido")
        if user_id is None:
            return StepResult.skipped("user_association", "nenhum usuário informado")

        user = db.get(User, user_id)
        if user is None:
            return StepResult.skipped("user_association", f"usuário {user_id} não encontrado")

        if self._has_super_admin_profile(db, user_id):
            logger.info("user holds super admin profile; association skipped user_id=%s", user_id)
            return StepResult.skipped("user_association", "usuário super admin")

        failures: list[str] = []
        for label, action in (
            ("profile", lambda: self._assign_client_admin_profile(db, user_id)),
            ("account_link", lambda: self._link_user_to_account(db, user_id, account_id)),
            ("first_login", lambda: self._clear_first_login(db, user)),
        ):
            try:
                with db.begin_nested():
                    action()
            except (SQLAlchemyError, LookupError) as exc:
                logger.exception("user association substep failed substep=%s user_id=%s", label, user_id)
                failures.append(f"{label}: {exc}")

        if failures:
            return StepResult.failure("user_association", "; ".join(failures))
        return StepResult.success("user_association", user_id=user_id)

    def _has_super_admin_profile(self, db: Session, user_id: int) -> bool:
        return (
            db.query(UserAccessProfile.id)
            .join(AccessProfile, AccessProfile.id == UserAccessProfile.access_profile_id)
            .filter(
                UserAccessProfile.user_id == user_id,
                AccessProfile.code == self.settings.super_admin_profile_code,
            )
            .first()
            is not None
        )

    def _find_client_admin_profile(self, db: Session) -> AccessProfile | None:
        by_code = (
            db.query(AccessProfile).filter(AccessProfile.code == self.settings.client_admin_profile_code).first()
        )
        if by_code is not None:
            return by_code
        return (
            db.query(AccessProfile)
            .filter(
                AccessProfile.admin.is_(True),
                AccessProfile.code != self.settings.super_admin_profile_code,
            )
            .order_by(AccessProfile.id)
            .first()
        )

    def _assign_client_admin_profile(self, db: Session, user_id: int) -> None:
        profile = self._find_client_admin_profile(db)
        if profile is None:
            raise LookupError("perfil client admin não encontrado")
        exists = (
            db.query(UserAccessProfile.id)
            .filter(UserAccessProfile.user_id == user_id, UserAccessProfile.access_profile_id == profile.id)
            .first()
        )
        if exists is None:
            db.add(UserAccessProfile(user_id=user_id, access_profile_id=profile.id))
            db.flush()

    @staticmethod
    def _link_user_to_account(db: Session, user_id: int, account_id: int) -> None:
        exists = (
            db.query(UserAccount.id)
            .filter(UserAccount.user_id == user_id, UserAccount.account_id == account_id)
            .first()
        )
        if exists is None:
            db.add(UserAccount(user_id=user_id, account_id=account_id))
            db.flush()

    @staticmethod
    def _clear_first_login(db: Session, user: User) -> None:
        if user.is_first_login:
            user.is_first_login = False
            db.flush()
