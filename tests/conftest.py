"""Shared test fixtures."""

from __future__ import annotations

import json

import pytest
from helpers import ScriptedBackend, SleepRecorder, document_payload

from asi_workflows.workflow.invoker import AgentInvoker
from asi_workflows.workflow.personas import PersonaRegistry
from asi_workflows.workflow.retry import RetryController


@pytest.fixture()
def valid_document_text() -> str:
    return json.dumps(document_payload())


@pytest.fixture()
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture()
def make_controller(sleep_recorder: SleepRecorder):
    """Build a retry controller over a scripted backend."""

    def _make(
        backend: ScriptedBackend,
        *,
        api_key: str | None = "sk-test",
        base_delay_seconds: float = 0.5,
        registry: PersonaRegistry | None = None,
    ) -> RetryController:
        invoker = AgentInvoker(backend=backend, api_key=api_key, model="gpt-test")
        return RetryController(
            invoker=invoker,
            registry=registry or PersonaRegistry(),
            base_delay_seconds=base_delay_seconds,
            sleep=sleep_recorder,
        )

    return _make
