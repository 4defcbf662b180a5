from __future__ import annotations

import json

import allure
import pytest
from helpers import document_payload

from asi_workflows.workflow.models import FailureKind, WorkflowError
from asi_workflows.workflow.schemas import (
    SCHEMAS_BY_NAME,
    AgentHubSchema,
    AuditSchema,
    DocumentSchema,
    KnowledgeSchema,
    parse_output_text,
    resolve_schema,
    response_format,
    validate_output,
)

pytestmark = [
    allure.epic("Workflow Core"),
    allure.feature("Schema Contracts"),
]


def _audit_payload() -> dict[str, object]:
    return {
        "metadata": {
            "auditId": "AUD-2026-03",
            "standard": "ISO9001:2015",
            "scope": "Installation process",
            "period": "Q3 2026",
            "sites": ["Melbourne"],
            "processes": ["Installation"],
            "leadAuditor": "J. Smith",
            "auditDate": "2026-10-01",
            "status": "completed",
        },
        "plan": {
            "objectives": ["Verify conformity"],
            "criteria": ["ISO 9001:2015"],
            "methods": ["Interview", "Record review"],
            "schedule": [{"area": "Workshop", "time": "09:00", "owner": "Supervisor"}],
        },
        "checklist": [
            {
                "clause": "7.5",
                "question": "Are work instructions controlled?",
                "evidenceNeeded": "Document register",
                "records": ["REG-001"],
            },
        ],
        "findings": [
            {
                "id": "F-1",
                "type": "minor_nc",
                "clause": "7.5",
                "requirement": "Documented information shall be controlled",
                "evidence": "WI-014 printed copy without revision",
                "description": "Uncontrolled copy in use",
                "risk": "Outdated method applied",
                "correctiveAction": "Withdraw uncontrolled copies",
                "owner": "Operations Manager",
                "dueDate": "2026-11-01",
                "status": "open",
            },
        ],
        "summary": {
            "strengths": ["Good training records"],
            "risks": ["Document control"],
            "overallConclusion": "Effective with one minor NC",
        },
        "questions": [],
    }


def test_exact_document_is_accepted_and_raw_round_trips() -> None:
    parsed, raw = validate_output(DocumentSchema, document_payload())

    assert isinstance(parsed, DocumentSchema)
    assert parsed.metadata.status == "draft"
    assert json.loads(raw) == parsed.model_dump()
    assert DocumentSchema.model_validate_json(raw) == parsed


def test_extra_top_level_field_is_rejected() -> None:
    payload = document_payload()
    payload["confidence"] = 0.9

    with pytest.raises(WorkflowError) as excinfo:
        validate_output(DocumentSchema, payload)

    assert excinfo.value.kind is FailureKind.NON_RETRYABLE
    assert "confidence" in excinfo.value.message


def test_extra_nested_field_is_rejected() -> None:
    payload = document_payload()
    payload["sections"][0]["notes"] = "extra"

    with pytest.raises(WorkflowError) as excinfo:
        validate_output(DocumentSchema, payload)

    assert excinfo.value.kind is FailureKind.NON_RETRYABLE


def test_missing_required_field_is_rejected() -> None:
    payload = document_payload()
    del payload["questions"]

    with pytest.raises(WorkflowError, match="questions"):
        validate_output(DocumentSchema, payload)


def test_enum_outside_declared_literals_is_rejected() -> None:
    with pytest.raises(WorkflowError, match=r"metadata\.status"):
        validate_output(DocumentSchema, document_payload(status="approved"))


def test_audit_schema_accepts_full_report() -> None:
    parsed, raw = validate_output(AuditSchema, _audit_payload())

    assert parsed.findings[0].type == "minor_nc"
    assert AuditSchema.model_validate_json(raw) == parsed


def test_audit_schema_rejects_unknown_standard() -> None:
    payload = _audit_payload()
    payload["metadata"]["standard"] = "ISO14001:2015"  # type: ignore[index]

    with pytest.raises(WorkflowError):
        validate_output(AuditSchema, payload)


def test_knowledge_schema_audit_is_optional() -> None:
    payload = {
        "answer": "Use the glass lifter.",
        "followUps": [],
        "warnings": [],
        "actionSuggestions": [],
        "knowledgeUpdates": [{"summary": "Lifter rated 200kg", "tags": ["glass"], "scope": "tech"}],
        "questions": [],
    }

    parsed, raw = validate_output(KnowledgeSchema, payload)

    assert parsed.audit is None
    assert KnowledgeSchema.model_validate_json(raw) == parsed


def test_agent_hub_action_requests_use_type_discriminator() -> None:
    payload = {
        "answer": "Drafting the procedure.",
        "warnings": [],
        "actionRequests": [
            {
                "type": "ims.document.request_review",
                "summary": "Review WI-014",
                "payload": {"docNumber": "WI-014", "revisionId": None},
            },
            {
                "type": "moltbook.post",
                "summary": "Share update",
                "payload": {"title": "Update", "body": "Done", "tags": []},
            },
        ],
        "knowledgeUpdates": [],
        "questions": [],
    }

    parsed, _ = validate_output(AgentHubSchema, payload)

    assert [action.type for action in parsed.actionRequests] == [
        "ims.document.request_review",
        "moltbook.post",
    ]


def test_agent_hub_action_payload_must_match_its_type() -> None:
    payload = {
        "answer": "",
        "warnings": [],
        "actionRequests": [
            {
                "type": "moltbook.comment",
                "summary": "Comment",
                "payload": {"title": "wrong shape", "body": "x", "tags": []},
            },
        ],
        "knowledgeUpdates": [],
        "questions": [],
    }

    with pytest.raises(WorkflowError):
        validate_output(AgentHubSchema, payload)


def test_parse_output_text_recovers_fenced_and_embedded_json() -> None:
    fenced = 'Here you go:\n```json\n{"answer": "ok"}\n```\nThanks.'
    embedded = 'Result: {"answer": "ok"} -- end'

    assert parse_output_text(fenced) == {"answer": "ok"}
    assert parse_output_text(embedded) == {"answer": "ok"}


def test_parse_output_text_rejects_non_object() -> None:
    with pytest.raises(WorkflowError) as excinfo:
        parse_output_text("[1, 2, 3]")

    assert excinfo.value.kind is FailureKind.NON_RETRYABLE


def test_response_format_closes_every_object() -> None:
    fmt = response_format(KnowledgeSchema)
    schema = fmt["schema"]

    assert fmt["strict"] is True
    assert fmt["name"] == "KnowledgeSchema"
    assert schema["additionalProperties"] is False
    assert "audit" in schema["required"]
    for definition in schema["$defs"].values():
        if definition.get("type") == "object":
            assert definition["additionalProperties"] is False
            assert set(definition["required"]) == set(definition["properties"])

    hub_schema = response_format(AgentHubSchema)["schema"]
    assert not _keys_anywhere(hub_schema) & {"oneOf", "discriminator"}
    action_items = hub_schema["properties"]["actionRequests"]["items"]
    assert len(action_items["anyOf"]) == 7


def _keys_anywhere(node: object) -> set[str]:
    if isinstance(node, dict):
        keys = set(node)
        for value in node.values():
            keys |= _keys_anywhere(value)
        return keys
    if isinstance(node, list):
        keys = set()
        for item in node:
            keys |= _keys_anywhere(item)
        return keys
    return set()


def test_every_schema_has_questions_escape_hatch() -> None:
    for schema in SCHEMAS_BY_NAME.values():
        assert "questions" in schema.model_fields


def test_resolve_schema_by_name() -> None:
    assert resolve_schema(" Document ") is DocumentSchema
    with pytest.raises(ValueError, match="Unknown schema"):
        resolve_schema("invoice")
