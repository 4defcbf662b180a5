"""Strict output schemas for each workflow persona and their validation helpers."""

from __future__ import annotations

import copy
import json
import re
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from asi_workflows.workflow.models import FailureKind, SchemaT, WorkflowError

_FENCED_JSON = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL | re.IGNORECASE)

DocType = Literal[
    "policy",
    "manual",
    "ims_procedure",
    "technical_procedure",
    "work_instruction",
    "form",
    "register",
]
KnowledgeScope = Literal["admin", "tech"]


class StrictModel(BaseModel):
    """Closed object: unknown keys are rejected."""

    model_config = ConfigDict(extra="forbid")


# ── Document manager ───────────────────────────────────────────────────────────


class DocumentMetadata(StrictModel):
    docId: str
    title: str
    type: DocType
    status: Literal["draft", "proposed", "active", "obsolete"]
    revision: str
    issueDate: str
    processOwner: str
    isoClauses: list[str]
    relatedDocs: list[str]


class DocumentSection(StrictModel):
    title: str
    content: str


class DocumentSchema(StrictModel):
    """Controlled IMS document draft."""

    metadata: DocumentMetadata
    sections: list[DocumentSection]
    changeSummary: list[str]
    adminIssuanceChecklist: list[str]
    questions: list[str]


# ── IMS auditor ────────────────────────────────────────────────────────────────


class AuditMetadata(StrictModel):
    auditId: str
    standard: Literal["ISO9001:2015"]
    scope: str
    period: str
    sites: list[str]
    processes: list[str]
    leadAuditor: str
    auditDate: str
    status: Literal["planned", "in_progress", "completed"]


class AuditScheduleItem(StrictModel):
    area: str
    time: str
    owner: str


class AuditPlan(StrictModel):
    objectives: list[str]
    criteria: list[str]
    methods: list[str]
    schedule: list[AuditScheduleItem]


class AuditChecklistItem(StrictModel):
    clause: str
    question: str
    evidenceNeeded: str
    records: list[str]


class AuditFinding(StrictModel):
    id: str
    type: Literal["conformity", "observation", "OFI", "minor_nc", "major_nc"]
    clause: str
    requirement: str
    evidence: str
    description: str
    risk: str
    correctiveAction: str
    owner: str
    dueDate: str
    status: Literal["open", "closed"]


class AuditSummary(StrictModel):
    strengths: list[str]
    risks: list[str]
    overallConclusion: str


class AuditSchema(StrictModel):
    """Internal audit plan, checklist and findings."""

    metadata: AuditMetadata
    plan: AuditPlan
    checklist: list[AuditChecklistItem]
    findings: list[AuditFinding]
    summary: AuditSummary
    questions: list[str]


# ── Knowledge assistant ────────────────────────────────────────────────────────


class KnowledgeUpdate(StrictModel):
    summary: str
    tags: list[str]
    scope: KnowledgeScope


class JobAudit(StrictModel):
    status: Literal["pass", "needs_attention"]
    issues: list[str]
    billingNotes: list[str]
    commercialOpportunities: list[str]
    improvements: list[str]
    complianceChecks: list[str]


class KnowledgeSchema(StrictModel):
    """Knowledge Q&A answer with optional job completion audit."""

    answer: str
    followUps: list[str]
    warnings: list[str]
    actionSuggestions: list[str]
    knowledgeUpdates: list[KnowledgeUpdate]
    audit: JobAudit | None = None
    questions: list[str]


# ── Agent hub (community actions) ──────────────────────────────────────────────


class RegisterPayload(StrictModel):
    name: str
    description: str | None
    website: str | None


class PostPayload(StrictModel):
    title: str
    body: str
    tags: list[str]


class CommentPayload(StrictModel):
    postId: str
    body: str


class ReactPayload(StrictModel):
    postId: str
    reaction: str


class DocumentDraftPayload(StrictModel):
    title: str
    docType: DocType
    isoClauses: list[str]
    processOwner: str
    relatedDocs: list[str]
    brief: str
    revision: str


class DocumentUpdatePayload(DocumentDraftPayload):
    docNumber: str


class ReviewRequestPayload(StrictModel):
    docNumber: str
    revisionId: str | None


class RegisterAction(StrictModel):
    type: Literal["moltbook.register"]
    summary: str
    payload: RegisterPayload


class PostAction(StrictModel):
    type: Literal["moltbook.post"]
    summary: str
    payload: PostPayload


class CommentAction(StrictModel):
    type: Literal["moltbook.comment"]
    summary: str
    payload: CommentPayload


class ReactAction(StrictModel):
    type: Literal["moltbook.react"]
    summary: str
    payload: ReactPayload


class CreateDraftAction(StrictModel):
    type: Literal["ims.document.create_draft"]
    summary: str
    payload: DocumentDraftPayload


class UpdateDraftAction(StrictModel):
    type: Literal["ims.document.update_draft"]
    summary: str
    payload: DocumentUpdatePayload


class RequestReviewAction(StrictModel):
    type: Literal["ims.document.request_review"]
    summary: str
    payload: ReviewRequestPayload


ActionRequest = Annotated[
    RegisterAction
    | PostAction
    | CommentAction
    | ReactAction
    | CreateDraftAction
    | UpdateDraftAction
    | RequestReviewAction,
    Field(discriminator="type"),
]


class AgentHubSchema(StrictModel):
    """Agent-hub round reply with requested community/IMS actions."""

    answer: str
    warnings: list[str]
    actionRequests: list[ActionRequest]
    knowledgeUpdates: list[KnowledgeUpdate]
    questions: list[str]


SCHEMAS_BY_NAME: dict[str, type[StrictModel]] = {
    "document": DocumentSchema,
    "audit": AuditSchema,
    "knowledge": KnowledgeSchema,
    "agent_hub": AgentHubSchema,
}

SCHEMAS_BY_PERSONA: dict[str, type[StrictModel]] = {
    "doc_manager": DocumentSchema,
    "ims_auditor": AuditSchema,
    "knowledge_admin": KnowledgeSchema,
    "knowledge_tech": KnowledgeSchema,
}


def parse_output_text(text: str) -> dict[str, Any]:
    """Recover the JSON object from model output text.

    Tries the whole text, then a fenced ```json block, then the outermost ``{...}``.
    """

    stripped = text.strip()
    candidates = [stripped]
    fenced = _FENCED_JSON.search(stripped)
    if fenced is not None:
        candidates.append(fenced.group(1))
    start = stripped.find("{")
    end = stripped.rfind("}")
    if start != -1 and end > start:
        candidates.append(stripped[start : end + 1])

    for candidate in candidates:
        payload = _try_load_dict(candidate)
        if payload is not None:
            return payload
    raise WorkflowError(
        FailureKind.NON_RETRYABLE,
        "Model output is not a JSON object.",
    )


def validate_output(schema: type[SchemaT], payload: Any) -> tuple[SchemaT, str]:
    """Validate ``payload`` against ``schema`` and return ``(parsed, raw)``.

    ``raw`` is the canonical JSON serialization of ``parsed``.
    """

    try:
        parsed = schema.model_validate(payload)
    except ValidationError as error:
        raise WorkflowError(
            FailureKind.NON_RETRYABLE,
            f"Model output does not match {schema.__name__}: "
            f"{error.error_count()} error(s); {_first_error(error)}",
        ) from error
    return parsed, parsed.model_dump_json()


def response_format(schema: type[BaseModel]) -> dict[str, Any]:
    """Outbound structured-output format: closed objects, every property required."""

    return {
        "type": "json_schema",
        "name": schema.__name__,
        "schema": _strict_json_schema(schema.model_json_schema()),
        "strict": True,
    }


def resolve_schema(name: str) -> type[StrictModel]:
    try:
        return SCHEMAS_BY_NAME[name.strip().lower()]
    except KeyError as error:
        raise ValueError(
            f"Unknown schema {name!r}. Use one of: {', '.join(sorted(SCHEMAS_BY_NAME))}.",
        ) from error


def _try_load_dict(raw: str) -> dict[str, Any] | None:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return None
    if not isinstance(parsed, dict):
        return None
    return parsed


def _first_error(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first["loc"]) or "<root>"
    return f"{location}: {first['msg']}"


def _strict_json_schema(node: Any) -> Any:
    node = copy.deepcopy(node)
    _tighten(node)
    return node


def _tighten(node: Any) -> None:
    if isinstance(node, dict):
        # Strict structured outputs accept anyOf only; each variant keeps its type literal.
        node.pop("discriminator", None)
        if "oneOf" in node:
            node["anyOf"] = node.pop("oneOf")
        properties = node.get("properties")
        if node.get("type") == "object" and isinstance(properties, dict):
            node["additionalProperties"] = False
            node["required"] = list(properties)
            for prop in properties.values():
                if isinstance(prop, dict):
                    prop.pop("default", None)
        for value in node.values():
            _tighten(value)
    elif isinstance(node, list):
        for item in node:
            _tighten(item)
