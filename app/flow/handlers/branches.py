"""
app/flow/handlers/branches.py

Handles: adding a branch (name -> create), within the package's branch limit
"""

from typing import List

from app.core.exceptions import ValidationError
from app.flow.actions import Action
from app.flow.gates import get_package
from app.flow.handlers.common import finish_text, retry, start_upgrade
from app.flow.registry import entry, state_handler
from app.flow.session import BranchSession
from app.flow.states import DialogState
from app.schemas.outbound import OutboundPlan, text
from app.services.business_service import count_branches, create_branch
from utils.constants import ASK_BRANCH_NAME, BRANCH_CREATED, BRANCH_LIMIT_REACHED
from utils.validation_utils import clean_text


@entry(Action.ADD_BRANCH)
async def start_add_branch(ctx) -> List[OutboundPlan]:
    package = get_package(ctx.tenant.package)
    if await count_branches(ctx.tenant.id) >= package.max_branches:
        notice = BRANCH_LIMIT_REACHED.format(package=package.label, limit=package.max_branches)
        return start_upgrade(ctx, notice=notice)

    ctx.tenant.go(DialogState.BRANCH_NAME, BranchSession())
    return [text(ASK_BRANCH_NAME)]


@state_handler(DialogState.BRANCH_NAME)
async def handle_branch_name(ctx) -> List[OutboundPlan]:
    try:
        name = clean_text(ctx.text, field="branch name", max_length=60)
    except ValidationError as e:
        return retry(e.message)

    branch = await create_branch(ctx.tenant.id, name, key=ctx.session.generation)
    return finish_text(ctx, BRANCH_CREATED.format(name=branch.name))
