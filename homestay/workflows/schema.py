"""Pydantic models for the checkout wizard workflow.

A workflow is a set of steps with intent-keyed transitions. Each
transition may name a guard that the session must pass before moving.
"""

from __future__ import annotations

from pydantic import BaseModel


class CheckoutStepDef(BaseModel):
    """One step of the checkout wizard."""

    id: str
    number: int = 0                        # 1-based position shown in the progress bar
    title: str = ""
    transitions: dict[str, str] = {}       # intent -> target step
    guards: dict[str, str] = {}            # intent -> guard name
    terminal: bool = False


class CheckoutWorkflowDef(BaseModel):
    """A complete checkout workflow definition."""

    id: str
    initial_state: str = ""
    states: dict[str, CheckoutStepDef] = {}
