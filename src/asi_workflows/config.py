"""Runtime configuration for structured workflow execution."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from urllib.parse import urlparse

from asi_workflows.workflow.backend.openai_backend import DEFAULT_BASE_URL
from asi_workflows.workflow.models import DEFAULT_MAX_RETRIES, DEFAULT_TIMEOUT_MS
from asi_workflows.workflow.personas import BUILTIN_PERSONAS
from asi_workflows.workflow.retry import DEFAULT_BASE_DELAY_SECONDS

DEFAULT_MODEL = "gpt-5.2"

# Per-workflow environment variables from earlier deployments, mapped to persona keys.
LEGACY_WORKFLOW_ENV: dict[str, str] = {
    "OPENAI_DOC_MANAGER_WORKFLOW_ID": "doc_manager",
    "OPENAI_IMS_AUDITOR_WORKFLOW_ID": "ims_auditor",
    "OPENAI_INTERNAL_ADMIN_WORKFLOW_ID": "knowledge_admin",
    "OPENAI_INTERNAL_TECH_WORKFLOW_ID": "knowledge_tech",
}


@dataclass(slots=True)
class ModelSettings:
    """Model backend connection settings."""

    api_key: str | None = None
    model: str = DEFAULT_MODEL
    base_url: str = DEFAULT_BASE_URL


@dataclass(slots=True)
class RetrySettings:
    """Per-call defaults for the retry controller."""

    timeout_ms: int = DEFAULT_TIMEOUT_MS
    max_retries: int = DEFAULT_MAX_RETRIES
    base_delay_seconds: float = DEFAULT_BASE_DELAY_SECONDS


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    model: ModelSettings = field(default_factory=ModelSettings)
    retry: RetrySettings = field(default_factory=RetrySettings)
    persona_bindings: tuple[tuple[str, str], ...] = ()

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment with sane defaults for local development."""

        return cls(
            model=ModelSettings(
                api_key=os.getenv("OPENAI_API_KEY") or None,
                model=(
                    os.getenv("ASI_WORKFLOW_MODEL")
                    or os.getenv("OPENAI_WORKFLOW_MODEL")
                    or DEFAULT_MODEL
                ),
                base_url=os.getenv("ASI_WORKFLOW_API_BASE_URL", DEFAULT_BASE_URL),
            ),
            retry=RetrySettings(
                timeout_ms=int(os.getenv("ASI_WORKFLOW_TIMEOUT_MS", str(DEFAULT_TIMEOUT_MS))),
                max_retries=int(
                    os.getenv("ASI_WORKFLOW_MAX_RETRIES", str(DEFAULT_MAX_RETRIES)),
                ),
                base_delay_seconds=float(
                    os.getenv(
                        "ASI_WORKFLOW_RETRY_BASE_DELAY_SECONDS",
                        str(DEFAULT_BASE_DELAY_SECONDS),
                    ),
                ),
            ),
            persona_bindings=_collect_persona_bindings(),
        )

    def validate(self) -> None:
        """Raise configuration error on invalid retry defaults or bindings.

        A missing credential is not checked here; it fails at invocation time.
        """

        if self.retry.timeout_ms <= 0:
            raise ValueError("ASI_WORKFLOW_TIMEOUT_MS must be > 0.")
        if self.retry.max_retries < 0:
            raise ValueError("ASI_WORKFLOW_MAX_RETRIES must be >= 0.")
        if self.retry.base_delay_seconds < 0:
            raise ValueError("ASI_WORKFLOW_RETRY_BASE_DELAY_SECONDS must be >= 0.")
        if not self.model.model.strip():
            raise ValueError("ASI_WORKFLOW_MODEL must not be empty.")
        _validate_base_url(self.model.base_url)
        for workflow_id, persona_key in self.persona_bindings:
            if persona_key not in BUILTIN_PERSONAS:
                raise ValueError(
                    f"Unknown persona {persona_key!r} for workflow id {workflow_id!r}. "
                    f"Use one of: {', '.join(sorted(BUILTIN_PERSONAS))}.",
                )


def _collect_persona_bindings() -> tuple[tuple[str, str], ...]:
    bindings: list[tuple[str, str]] = []
    raw = os.getenv("ASI_WORKFLOW_PERSONA_BINDINGS", "").strip()
    if raw:
        for part in raw.split(","):
            token = part.strip()
            if not token:
                continue
            if "|" not in token:
                raise ValueError(
                    "Invalid ASI_WORKFLOW_PERSONA_BINDINGS entry: "
                    f"{token!r}. Expected format '<workflow_id>|<persona_key>'.",
                )
            workflow_id, persona_key = token.rsplit("|", 1)
            bindings.append((workflow_id.strip(), persona_key.strip().lower()))

    for env_name, persona_key in LEGACY_WORKFLOW_ENV.items():
        workflow_id = os.getenv(env_name, "").strip()
        if workflow_id:
            bindings.append((workflow_id, persona_key))
    return tuple(bindings)


def _validate_base_url(value: str) -> None:
    parsed = urlparse(value)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError(
            "Invalid ASI_WORKFLOW_API_BASE_URL: "
            f"{value!r}. Expected an absolute URL with http:// or https:// scheme.",
        )
