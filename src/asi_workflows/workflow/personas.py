"""Persona registry: workflow identifier to agent persona lookup."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from asi_workflows.workflow.models import Persona

logger = logging.getLogger(__name__)

FALLBACK_PERSONA_KEY = "fallback"

_JSON_ONLY = (
    "You ONLY output valid JSON that matches the schema. No prose, no markdown, no extra keys."
)

DOC_MANAGER = Persona(
    key="doc_manager",
    display_name="Doc Manager",
    instructions=f"""\
You are the IMS Document Manager & Controller (ISO 9001:2015 Lead Auditor level).
{_JSON_ONLY}

- Produce compliant document drafts and revision updates for the IMS.
- Enforce document control: IDs (POL-###, MAN-###, IMS-PROC-###, TECH-PROC-###, WI-###,
  FRM-###, REG-###), numeric revisions with an issue date, status "draft" or "proposed"
  unless issuance is explicitly approved.
- Map content to ISO clauses ("7.5", "8.1"), define records, responsibilities and
  verification.
- If required inputs are missing, keep "sections" empty and ask in "questions".
- Use empty strings/arrays instead of null. Do not invent company specifics.
""",
)

IMS_AUDITOR = Persona(
    key="ims_auditor",
    display_name="IMS Auditor",
    instructions=f"""\
You are the IMS Internal Auditor (ISO 9001:2015 Lead Auditor level).
{_JSON_ONLY}

- Build internal audit plans and checklists aligned to ISO 9001:2015.
- Findings must include requirement, evidence and clause reference.
- Issue corrective actions with owners and due dates for every nonconformity.
- Dates in YYYY-MM-DD format. Use empty strings/arrays instead of null.
- If required inputs are missing, ask in "questions". Do not invent evidence.
""",
)

KNOWLEDGE_ADMIN = Persona(
    key="knowledge_admin",
    display_name="Operations Strategist",
    instructions=f"""\
You are the Internal Knowledge Assistant (Admin).
{_JSON_ONLY}

- Provide business, commercial, IMS, risk, compliance and technical guidance using the
  live data context in the prompt. Do not invent facts.
- For job completion audits populate the "audit" object.
- Always include knowledgeUpdates; scope="admin" for internal knowledge, scope="tech"
  only for updates safe for technicians.
- Ask follow-ups in followUps and add warnings in warnings when information is missing.
""",
)

KNOWLEDGE_TECH = Persona(
    key="knowledge_tech",
    display_name="Field Technician",
    instructions=f"""\
You are the Technician Knowledge Assistant.
{_JSON_ONLY}

- Scope: technical procedures, QA/IMS guidance for doing the work, customer service.
- Do NOT provide commercial, financial, pricing, strategy, HR or admin information;
  refuse briefly in answer and add a warning.
- All knowledgeUpdates must use scope="tech". Do not include the audit object.
- Ask follow-ups in followUps and add warnings in warnings when information is missing.
""",
)

FALLBACK = Persona(
    key=FALLBACK_PERSONA_KEY,
    display_name="Assistant",
    instructions=f"You are a helpful assistant.\n{_JSON_ONLY}\n",
)

BUILTIN_PERSONAS: dict[str, Persona] = {
    persona.key: persona
    for persona in (DOC_MANAGER, IMS_AUDITOR, KNOWLEDGE_ADMIN, KNOWLEDGE_TECH, FALLBACK)
}


class PersonaRegistry:
    """Total, read-only mapping from workflow identifier to persona.

    Built-in persona keys always resolve to themselves; configured bindings map
    deployment-specific workflow identifiers onto persona keys. Anything else resolves
    to the fallback persona.
    """

    def __init__(
        self,
        bindings: Iterable[tuple[str, str]] | Mapping[str, str] = (),
        *,
        personas: Mapping[str, Persona] | None = None,
        fallback_key: str = FALLBACK_PERSONA_KEY,
    ) -> None:
        self._personas = dict(personas if personas is not None else BUILTIN_PERSONAS)
        if fallback_key not in self._personas:
            raise ValueError(f"Fallback persona {fallback_key!r} is not registered.")
        self._fallback = self._personas[fallback_key]

        pairs = bindings.items() if isinstance(bindings, Mapping) else bindings
        self._bindings: dict[str, str] = {}
        for workflow_id, persona_key in pairs:
            normalized = normalize_workflow_id(workflow_id)
            if not normalized:
                continue
            if persona_key not in self._personas:
                raise ValueError(
                    f"Unknown persona {persona_key!r} bound to workflow {workflow_id!r}.",
                )
            if normalized in self._bindings:
                # First binding wins; a collision is a deployment misconfiguration.
                logger.warning(
                    "Workflow id %r is bound more than once; keeping persona %r, ignoring %r",
                    workflow_id,
                    self._bindings[normalized],
                    persona_key,
                )
                continue
            self._bindings[normalized] = persona_key

    @property
    def fallback(self) -> Persona:
        return self._fallback

    def resolve(self, workflow_id: str) -> Persona:
        """Return the persona for ``workflow_id``; never raises."""

        normalized = normalize_workflow_id(workflow_id)
        persona_key = self._bindings.get(normalized)
        if persona_key is not None:
            return self._personas[persona_key]
        builtin = self._personas.get(normalized)
        if builtin is not None:
            return builtin
        return self._fallback

    def bindings(self) -> list[tuple[str, str]]:
        """Configured identifier → persona key pairs, in binding order."""

        return list(self._bindings.items())

    def personas(self) -> list[Persona]:
        return list(self._personas.values())


DEFAULT_REGISTRY = PersonaRegistry()


def resolve_persona(workflow_id: str, registry: PersonaRegistry | None = None) -> Persona:
    """Resolve a persona using ``registry`` or the built-in defaults."""

    return (registry or DEFAULT_REGISTRY).resolve(workflow_id)


def normalize_workflow_id(value: str) -> str:
    return value.strip().lower().replace("-", "_")
