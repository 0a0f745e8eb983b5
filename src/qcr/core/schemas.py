from typing import List, Optional, Literal
from pydantic import BaseModel, ConfigDict, Field

Severity = Literal["critical", "high", "medium", "low"]

# descending impact
SEVERITY_ORDER = ("critical", "high", "medium", "low")


class SourceFile(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    content: str

    @property
    def lines(self) -> List[str]:
        return self.content.split("\n")


class Finding(BaseModel):
    severity: Severity
    message: str
    line: Optional[int] = Field(default=None, ge=1)
    rule: str = ""


class AnalysisResult(BaseModel):
    issues: List[Finding] = Field(default_factory=list)
    suggestions: List[Finding] = Field(default_factory=list)

    @property
    def has_critical(self) -> bool:
        return any(f.severity == "critical" for f in self.issues)


class Review(BaseModel):
    filename: str
    language: str = "unknown"
    score: int = Field(..., ge=0, le=100)
    issues: List[Finding]
    suggestions: List[Finding]
    summary: str
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error is not None
