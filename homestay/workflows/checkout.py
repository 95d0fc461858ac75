"""Four-step checkout wizard: guest info, summary, payment, confirmation.

The canonical definition lives in ``checkout.jsonl`` next to this module.
This module loads it once and exposes the linear step order derived from
the forward transitions.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from homestay.workflows.loader import load_workflow_jsonl
from homestay.workflows.schema import CheckoutWorkflowDef


class CheckoutStep(str, Enum):
    GUEST_INFO = "guest_info"
    SUMMARY = "summary"
    PAYMENT = "payment"
    CONFIRMATION = "confirmation"


# Intents that move the wizard forward, in priority order
FORWARD_INTENTS = ("next", "paid")

_JSONL_PATH = Path(__file__).resolve().parent / "checkout.jsonl"

WORKFLOW_DEF: CheckoutWorkflowDef = load_workflow_jsonl(_JSONL_PATH)
WORKFLOW_ID = WORKFLOW_DEF.id


def _build_linear_order(wf: CheckoutWorkflowDef) -> list[str]:
    """Walk the forward transitions from the initial state."""
    order = []
    visited = set()
    current = wf.initial_state

    while current and current not in visited:
        state = wf.states.get(current)
        if not state:
            break
        visited.add(current)
        order.append(current)

        next_id = ""
        for intent in FORWARD_INTENTS:
            target = state.transitions.get(intent, "")
            if target:
                next_id = target
                break
        current = next_id

    return order


STEP_ORDER: list[str] = _build_linear_order(WORKFLOW_DEF)
FIRST_STEP: str = STEP_ORDER[0] if STEP_ORDER else ""


def step_number(step_id: str) -> int:
    """1-based position of ``step_id`` in the wizard."""
    state = WORKFLOW_DEF.states.get(step_id)
    if state and state.number:
        return state.number
    return STEP_ORDER.index(step_id) + 1
