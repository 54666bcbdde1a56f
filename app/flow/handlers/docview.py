"""
app/flow/handlers/docview.py

Handles: browsing saved invoices, quotations and receipts

Pick one of the most recent documents, then view its PDF or delete it.
Deleting is refused once money has been received against the document.
"""

from typing import List

from app.core.exceptions import ValidationError
from app.flow.actions import DOCUMENT_PREFIX, Action, token_value
from app.flow.handlers.common import CANCEL_OPTION, finish, finish_text, retry
from app.flow.registry import entry, state_handler
from app.flow.session import DocViewSession
from app.flow.states import DialogState
from app.models.records import Document
from app.schemas.outbound import DocumentPlan, Option, OutboundPlan, RenderJob, options
from app.services.document_service import DOC_LABELS, delete_document, get_document, recent_documents
from utils.constants import (
    BUTTON_DELETE,
    BUTTON_VIEW_PDF,
    DOCUMENT_DELETED,
    DOCUMENT_PDF_CAPTION,
    DOCVIEW_CHOOSE,
    DOCVIEW_DETAIL,
    DOCVIEW_EMPTY,
    NOT_UNDERSTOOD,
)
from utils.format_utils import format_money, truncate
from utils.time_utils import format_timestamp

VIEW_ENTRIES = {
    Action.VIEW_INVOICES: "invoice",
    Action.VIEW_QUOTES: "quote",
    Action.VIEW_RECEIPTS: "receipt",
}

DOCUMENT_ACTIONS = [
    Option(id=Action.VIEW_PDF.value, title=BUTTON_VIEW_PDF),
    Option(id=Action.DELETE_DOCUMENT.value, title=BUTTON_DELETE),
    CANCEL_OPTION,
]


async def _document_picker(ctx, doc_type: str):
    documents = await recent_documents(ctx.tenant.id, doc_type, ctx.principal.branch_scope)
    if not documents:
        return None
    rows = [
        Option(
            id=f"{DOCUMENT_PREFIX}{doc.id}",
            title=doc.number,
            description=truncate(f"{doc.client_name} | {format_money(doc.total, doc.currency)}", 72),
        )
        for doc in documents
    ]
    label = DOC_LABELS[doc_type].lower()
    return options(DOCVIEW_CHOOSE.format(label=label), rows + [CANCEL_OPTION], button_label="Documents")


def _detail(document: Document) -> str:
    return DOCVIEW_DETAIL.format(
        number=document.number,
        status=document.status,
        client=document.client_name,
        total=format_money(document.total, document.currency),
        balance=format_money(document.balance, document.currency),
        date=format_timestamp(document.created_at),
    )


async def _selected_document(ctx):
    """The session's document, if it still exists and the sender may see it."""
    session: DocViewSession = ctx.session
    if not session.document_id:
        return None
    document = await get_document(ctx.tenant.id, session.document_id)
    scope = ctx.principal.branch_scope
    if document is None or (scope and document.branch_id != scope):
        return None
    return document


@entry(*VIEW_ENTRIES)
async def start_docview(ctx) -> List[OutboundPlan]:
    doc_type = VIEW_ENTRIES[Action(ctx.action)]
    picker = await _document_picker(ctx, doc_type)
    if picker is None:
        return finish_text(ctx, DOCVIEW_EMPTY.format(label=DOC_LABELS[doc_type].lower()))

    ctx.tenant.go(DialogState.DOCVIEW_PICK, DocViewSession(doc_type=doc_type))
    return [picker]


@state_handler(DialogState.DOCVIEW_PICK)
async def handle_docview_pick(ctx) -> List[OutboundPlan]:
    session: DocViewSession = ctx.session
    document_id = token_value(ctx.action, DOCUMENT_PREFIX)
    document = await get_document(ctx.tenant.id, document_id) if document_id else None
    scope = ctx.principal.branch_scope
    if document is None or document.doc_type != session.doc_type or (scope and document.branch_id != scope):
        return retry(NOT_UNDERSTOOD, await _document_picker(ctx, session.doc_type))

    session.document_id = document.id
    ctx.tenant.go(DialogState.DOCVIEW_ACTION, session)
    return [options(_detail(document), DOCUMENT_ACTIONS)]


@state_handler(DialogState.DOCVIEW_ACTION)
async def handle_docview_action(ctx) -> List[OutboundPlan]:
    document = await _selected_document(ctx)
    if document is None:
        return finish_text(ctx, NOT_UNDERSTOOD)

    caption = DOCUMENT_PDF_CAPTION.format(label=DOC_LABELS[document.doc_type], number=document.number)

    if ctx.action == Action.VIEW_PDF.value:
        if document.pdf_url:
            return finish(
                ctx,
                DocumentPlan(url=document.pdf_url, filename=f"{document.number}.pdf", caption=caption),
            )
        ctx.add_job(RenderJob(document_id=document.id, number=document.number, caption=caption))
        return finish(ctx)

    if ctx.action == Action.DELETE_DOCUMENT.value:
        try:
            await delete_document(ctx.tenant.id, document.id)
        except ValidationError as e:
            return finish_text(ctx, e.message)
        return finish_text(ctx, DOCUMENT_DELETED.format(number=document.number))

    return retry(NOT_UNDERSTOOD, options(_detail(document), DOCUMENT_ACTIONS))
