"""
app/flow/handlers/reports.py

Handles: sales and cash reports

- Daily / weekly / monthly summaries; managers and clerks only see
  their own branch
- Branch report (owner): pick a branch, month-to-date summary
"""

from typing import List, Optional

from app.flow.actions import BRANCH_PREFIX, Action, token_value
from app.flow.handlers.common import CANCEL_OPTION, finish, finish_text, retry
from app.flow.menus import sub_menu_plan
from app.flow.registry import entry, state_handler
from app.flow.session import ReportSession
from app.flow.states import DialogState
from app.schemas.outbound import Option, OutboundPlan, options, text
from app.services.business_service import get_branch, list_branches
from app.services.ledger_service import ReportSummary, build_report
from utils.constants import (
    BRANCHES_HEADER,
    NOT_UNDERSTOOD,
    REPORT_CHOOSE_BRANCH,
    REPORT_TEXT,
    REPORT_TITLES,
    REPORTS_MENU_TEXT,
)
from utils.format_utils import format_money

PERIODS = {
    Action.REPORT_DAILY: "daily",
    Action.REPORT_WEEKLY: "weekly",
    Action.REPORT_MONTHLY: "monthly",
}

BRANCH_REPORT_PERIOD = "monthly"


def format_report(summary: ReportSummary, currency: str, branch_name: Optional[str] = None) -> str:
    return REPORT_TEXT.format(
        title=REPORT_TITLES[summary.period],
        scope=f" | {branch_name}" if branch_name else "",
        invoices=summary.invoices,
        sales=format_money(summary.sales, currency),
        cash=format_money(summary.cash_received, currency),
        expenses=format_money(summary.expenses, currency),
        net_cash=format_money(summary.net_cash, currency),
        outstanding=format_money(summary.outstanding, currency),
    )


@entry(Action.REPORTS_MENU)
async def open_reports(ctx) -> List[OutboundPlan]:
    ctx.tenant.go(DialogState.REPORTS_MENU, ReportSession())
    return [sub_menu_plan(Action.REPORTS_MENU, ctx.principal, REPORTS_MENU_TEXT)]


@state_handler(DialogState.REPORTS_MENU)
async def handle_reports_menu(ctx) -> List[OutboundPlan]:
    return retry(NOT_UNDERSTOOD, sub_menu_plan(Action.REPORTS_MENU, ctx.principal, REPORTS_MENU_TEXT))


@entry(*PERIODS)
async def run_period_report(ctx) -> List[OutboundPlan]:
    period = PERIODS[Action(ctx.action)]
    scope = ctx.principal.branch_scope
    branch_name = None
    if scope:
        branch = await get_branch(ctx.tenant.id, scope)
        branch_name = branch.name if branch else None

    summary = await build_report(ctx.tenant.id, period, scope, ctx.now)
    return finish(ctx, text(format_report(summary, ctx.currency, branch_name)))


async def _branch_picker(ctx):
    branches = await list_branches(ctx.tenant.id)
    if not branches:
        return None
    rows = [Option(id=f"{BRANCH_PREFIX}{b.id}", title=b.name) for b in branches[:9]]
    return options(REPORT_CHOOSE_BRANCH, rows + [CANCEL_OPTION], button_label="Branches")


@entry(Action.REPORT_BRANCH)
async def start_branch_report(ctx) -> List[OutboundPlan]:
    picker = await _branch_picker(ctx)
    if picker is None:
        return finish_text(ctx, BRANCHES_HEADER)
    ctx.tenant.go(DialogState.REPORT_PICK_BRANCH, ReportSession())
    return [picker]


@state_handler(DialogState.REPORT_PICK_BRANCH)
async def handle_report_branch(ctx) -> List[OutboundPlan]:
    branch_id = token_value(ctx.action, BRANCH_PREFIX)
    branch = await get_branch(ctx.tenant.id, branch_id) if branch_id else None
    if branch is None:
        return retry(NOT_UNDERSTOOD, await _branch_picker(ctx))

    summary = await build_report(ctx.tenant.id, BRANCH_REPORT_PERIOD, branch.id, ctx.now)
    return finish(ctx, text(format_report(summary, ctx.currency, branch.name)))
