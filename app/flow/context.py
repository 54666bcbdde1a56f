"""
app/flow/context.py

Purpose: Everything one dialog turn works with

- The locked tenant, the sender's principal and the normalized input
- Post-commit jobs (rendering, logo download) collected during the turn
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from app.flow.normalizer import NormalizedInput
from app.models.principal import Principal
from app.models.tenant import Tenant
from app.schemas.outbound import PostCommitJob
from app.schemas.webhook import InboundMessage


@dataclass
class TurnContext:
    tenant: Tenant
    principal: Principal
    inbound: InboundMessage
    inp: NormalizedInput
    now: datetime = field(default_factory=datetime.utcnow)
    jobs: List[PostCommitJob] = field(default_factory=list)

    @property
    def action(self) -> Optional[str]:
        return self.inp.action

    @property
    def text(self) -> str:
        return self.inp.text

    @property
    def session(self):
        return self.tenant.session

    @property
    def currency(self) -> str:
        return self.tenant.currency

    def add_job(self, job: PostCommitJob) -> None:
        self.jobs.append(job)
