"""Load JSONL workflow definitions into CheckoutWorkflowDef objects."""

from __future__ import annotations

import json
from pathlib import Path

from homestay.workflows.schema import CheckoutStepDef, CheckoutWorkflowDef


def load_workflow_jsonl(path: str | Path) -> CheckoutWorkflowDef:
    """Load a single workflow from a JSONL file.

    The JSONL file contains exactly one JSON object (the workflow).
    Steps are nested inside the top-level ``states`` dict.
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8").strip()

    # JSONL: one JSON object per line, take the first non-empty line
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        data = json.loads(line)
        return parse_workflow(data)

    raise ValueError(f"No workflow found in {path}")


def parse_workflow(data: dict) -> CheckoutWorkflowDef:
    """Parse a raw dict into a CheckoutWorkflowDef and check its targets."""
    raw_states = data.get("states", {})
    states: dict[str, CheckoutStepDef] = {}
    for state_id, state_data in raw_states.items():
        if isinstance(state_data, dict):
            state_data.setdefault("id", state_id)
            states[state_id] = CheckoutStepDef(**state_data)
        else:
            states[state_id] = state_data

    data["states"] = states
    workflow = CheckoutWorkflowDef(**data)

    if workflow.initial_state not in workflow.states:
        raise ValueError(
            f"Workflow {workflow.id}: initial state {workflow.initial_state!r} is not defined"
        )
    for state in workflow.states.values():
        for intent, target in state.transitions.items():
            if target not in workflow.states:
                raise ValueError(
                    f"Workflow {workflow.id}: {state.id} --{intent}--> "
                    f"unknown state {target!r}"
                )
        if state.terminal and state.transitions:
            raise ValueError(f"Workflow {workflow.id}: terminal state {state.id} has transitions")
    return workflow
