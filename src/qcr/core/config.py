"""
config.py
=========
Settings for the reviewer, loaded from QCR_* environment variables or a .env
file. CLI flags and the streamlit sidebar override these per run.
"""

from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from qcr.core.scoring import ScoringPolicy, policy_from_name


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="QCR_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    # ── AI collaborator ──────────────────────────
    api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("QCR_API_KEY", "OPENAI_API_KEY"),
    )
    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-3.5-turbo"
    temperature: float = 0.7
    max_tokens: int = 1000
    timeout: float = 120.0
    max_chunk_chars: int = 12000

    # ── Scoring ──────────────────────────────────
    #   "severity" → weigh issues by severity (default)
    #   "flat"     → fixed penalty per issue / suggestion
    scoring_policy: str = "severity"
    flat_issue_penalty: float = 15
    flat_suggestion_penalty: float = 5
    severity_critical: float = 20
    severity_high: float = 10
    severity_medium: float = 5
    severity_low: float = 0
    per_suggestion: float = 2

    # ── Batch ────────────────────────────────────
    max_workers: int = 4
    max_files: int = 30
    log_level: str = "WARNING"

    def scoring(self, name: Optional[str] = None) -> ScoringPolicy:
        name = name or self.scoring_policy
        if name.lower().strip() == "flat":
            return policy_from_name(
                name,
                issue_penalty=self.flat_issue_penalty,
                suggestion_penalty=self.flat_suggestion_penalty,
            )
        return policy_from_name(
            name,
            critical=self.severity_critical,
            high=self.severity_high,
            medium=self.severity_medium,
            low=self.severity_low,
            per_suggestion=self.per_suggestion,
        )
