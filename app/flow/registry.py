"""
app/flow/registry.py

Purpose: State and entry handler tables

- @state_handler(*states): the handler that consumes input in a state
- @entry(*actions): the starter run when a flow-entry token arrives
  (after the router's access and feature gates)

Handlers take a TurnContext, move the tenant with go()/reset() and
return the reply plans for the sender.
"""

from typing import Awaitable, Callable, Dict, List

from app.flow.actions import Action
from app.flow.context import TurnContext
from app.flow.states import DialogState
from app.schemas.outbound import OutboundPlan

Handler = Callable[[TurnContext], Awaitable[List[OutboundPlan]]]

STATE_HANDLERS: Dict[DialogState, Handler] = {}
ENTRY_STARTERS: Dict[Action, Handler] = {}


def state_handler(*states: DialogState):
    def register(func: Handler) -> Handler:
        for state in states:
            if state in STATE_HANDLERS:
                raise RuntimeError(f"Duplicate handler for state {state.value}")
            STATE_HANDLERS[state] = func
        return func
    return register


def entry(*actions: Action):
    def register(func: Handler) -> Handler:
        for action in actions:
            if action in ENTRY_STARTERS:
                raise RuntimeError(f"Duplicate starter for {action.value}")
            ENTRY_STARTERS[action] = func
        return func
    return register
