"""
app/flow/dispatcher.py

Purpose: Central message dispatcher

- Receives parsed messages from either webhook
- De-duplicates provider retries by message id
- Resolves the sender's business and membership
- Runs one dialog turn under the business lock, retrying on version
  conflicts
- Delivers replies, then runs post-commit jobs (PDF rendering, logo
  download) and notifications outside the lock
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from pymongo.errors import DuplicateKeyError

from app.core.config import settings
from app.core.exceptions import (
    ConcurrencyConflict,
    ExternalServiceError,
    RenderError,
    UnknownTenantError,
)
from app.core.logging import LogContext, get_logger
from app.db.mongo import get_processed_messages_collection
from app.flow.actions import Action
from app.flow.context import TurnContext
from app.flow.handlers import onboarding
from app.flow.normalizer import normalize_input
from app.flow.router import route_turn
from app.schemas.outbound import (
    DocumentPlan,
    LogoJob,
    Notification,
    OutboundPlan,
    PostCommitJob,
    RenderJob,
    text,
)
from app.schemas.webhook import InboundMessage
from app.services.document_service import render_document
from app.services.identity_service import get_active_principal, resolve_tenant_id
from app.services.logo_service import store_logo
from app.services.outbound_service import deliver, send_plan
from app.services.tenant_service import tenant_transaction
from utils.constants import (
    DOCUMENT_PDF_UNAVAILABLE,
    GENERIC_FAILURE,
    LOGO_FAILED,
    NO_ACCESS_TO_BUSINESS,
)
from utils.validation_utils import normalize_phone

logger = get_logger(__name__)


@dataclass
class TurnOutcome:
    """What a processed message produced, delivered after the webhook replies."""
    transport: str
    to_phone: str
    tenant_id: Optional[str] = None
    plans: List[OutboundPlan] = field(default_factory=list)
    jobs: List[PostCommitJob] = field(default_factory=list)
    notifications: List[Notification] = field(default_factory=list)


def _message_key(message: InboundMessage) -> str:
    return f"{message.transport}:{message.message_id}"


async def _claim(message: InboundMessage) -> bool:
    """False when this provider message id was already handled."""
    try:
        await get_processed_messages_collection().insert_one(
            {"_id": _message_key(message), "received_at": datetime.utcnow()}
        )
    except DuplicateKeyError:
        return False
    return True


async def _release(message: InboundMessage) -> None:
    """Lets a provider retry of a failed message through again."""
    try:
        await get_processed_messages_collection().delete_one({"_id": _message_key(message)})
    except Exception as e:
        logger.error(f"Could not release message {message.message_id}: {e}")


def _is_join(message: InboundMessage) -> bool:
    return normalize_input(message).action == Action.JOIN.value


async def _run_turn(message: InboundMessage, phone: str, tenant_id: str, outcome: TurnOutcome) -> None:
    for attempt in range(1, settings.TURN_MAX_RETRIES + 1):
        outcome.jobs = []
        try:
            async with tenant_transaction(tenant_id) as tenant:
                principal = await get_active_principal(tenant_id, phone)
                if principal is None:
                    outcome.plans = [text(NO_ACCESS_TO_BUSINESS)]
                    return

                inp = normalize_input(message, tenant.current_state, tenant.session, principal.role)
                ctx = TurnContext(tenant=tenant, principal=principal, inbound=message, inp=inp)
                outcome.plans = await route_turn(ctx)
                outcome.jobs = list(ctx.jobs)
            return
        except ConcurrencyConflict:
            logger.warning(f"⚠️ Version conflict on attempt {attempt}/{settings.TURN_MAX_RETRIES}")

    raise ConcurrencyConflict(f"Gave up after {settings.TURN_MAX_RETRIES} attempts")


async def process_inbound(message: InboundMessage) -> TurnOutcome:
    """
    Processes one inbound message up to (not including) delivery.

    Raises:
        IdentityError: the sender phone cannot be normalized
    """
    phone = normalize_phone(message.phone, settings.DEFAULT_COUNTRY_CODE)
    outcome = TurnOutcome(transport=message.transport, to_phone=phone)

    with LogContext(phone=phone, message_id=message.message_id, transport=message.transport):
        if not await _claim(message):
            logger.info(f"🔁 Duplicate message {message.message_id} ignored")
            return outcome

        logger.info(f"📨 Message from {phone} via {message.transport}")
        try:
            if _is_join(message):
                outcome.plans = await onboarding.accept_join(message, phone, outcome.notifications)
                return outcome

            try:
                tenant_id = await resolve_tenant_id(phone)
            except UnknownTenantError:
                outcome.plans = await onboarding.handle_unbound(message, phone, outcome.notifications)
                return outcome

            outcome.tenant_id = tenant_id
            await _run_turn(message, phone, tenant_id, outcome)

        except Exception as e:
            logger.error(f"❌ Dispatcher error: {e}", exc_info=True)
            outcome.plans = [text(GENERIC_FAILURE)]
            outcome.jobs = []
            outcome.notifications = []
            await _release(message)

    return outcome


async def _run_job(outcome: TurnOutcome, job: PostCommitJob) -> None:
    if isinstance(job, RenderJob):
        try:
            document = await render_document(outcome.tenant_id, job.document_id)
        except RenderError as e:
            logger.warning(f"⚠️ Could not render {job.number}: {e.message}")
            await send_plan(outcome.transport, outcome.to_phone, text(DOCUMENT_PDF_UNAVAILABLE.format(number=job.number)))
            return
        except Exception as e:
            logger.error(f"❌ Renderer error for {job.number}: {e}", exc_info=True)
            await send_plan(outcome.transport, outcome.to_phone, text(DOCUMENT_PDF_UNAVAILABLE.format(number=job.number)))
            return

        plan = DocumentPlan(url=document.pdf_url, filename=f"{document.number}.pdf", caption=job.caption)
        await send_plan(outcome.transport, outcome.to_phone, plan)

    elif isinstance(job, LogoJob):
        try:
            await store_logo(job)
        except ExternalServiceError as e:
            logger.warning(f"⚠️ Logo not stored: {e.message}")
            await send_plan(outcome.transport, outcome.to_phone, text(LOGO_FAILED))


async def deliver_outcome(outcome: TurnOutcome) -> None:
    """
    Sends the replies, then runs post-commit jobs and notifications.
    Never raises: it runs as a background task after the webhook returned.
    """
    try:
        with LogContext(phone=outcome.to_phone, tenant_id=outcome.tenant_id, transport=outcome.transport):
            if outcome.plans:
                await deliver(outcome.transport, outcome.to_phone, outcome.plans)

            for job in outcome.jobs:
                await _run_job(outcome, job)

            for notification in outcome.notifications:
                await send_plan(outcome.transport, notification.to_phone, notification.plan)
    except Exception as e:
        logger.error(f"❌ Delivery error: {e}", exc_info=True)
