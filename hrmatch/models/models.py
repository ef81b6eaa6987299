from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class DocumentKind(str, Enum):
    JD = "jd"
    RESUME = "resume"


class MatrixMode(str, Enum):
    """Scheduling of a rows x cols task matrix"""
    ROW_MAJOR = "row_major"
    FLATTENED = "flattened"


class DocumentBlob(BaseModel):
    """Raw uploaded bytes plus the label (filename) they arrived under"""
    content: bytes
    label: str


class JobDescriptionData(BaseModel):
    title: str = ""
    company: str = ""
    location: str = ""
    salary: str = ""
    requirements: List[str] = Field(default_factory=list)
    responsibilities: List[str] = Field(default_factory=list)
    skills: List[str] = Field(default_factory=list)
    industrial_experience: List[str] = Field(default_factory=list)
    domain_experience: List[str] = Field(default_factory=list)
    required_industrial_experience_years: float = 0.0
    required_domain_experience_years: float = 0.0


class ResumeData(BaseModel):
    name: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None
    skills: List[str] = Field(default_factory=list)
    experience: List[str] = Field(default_factory=list)
    education: List[str] = Field(default_factory=list)
    certifications: List[str] = Field(default_factory=list)
    total_industrial_experience_years: float = 0.0
    total_domain_experience_years: float = 0.0


class ExtractionRecord(BaseModel):
    """Structured data extracted from one uploaded document"""
    model_config = ConfigDict(frozen=True)

    kind: DocumentKind
    source_label: str
    content_hash: str
    data: Dict[str, Any]
    extracted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class MatchRecord(BaseModel):
    """Score and analysis for one (JD, resume) pair"""
    model_config = ConfigDict(frozen=True)

    jd_index: int
    resume_index: int
    jd_title: str = ""
    candidate_name: str = ""
    score: float = Field(default=0.0, ge=0.0, le=100.0)
    relevant: bool = False
    matched_skills: List[str] = Field(default_factory=list)
    unmatched_skills: List[str] = Field(default_factory=list)
    strengths: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    raw_analysis: Dict[str, Any] = Field(default_factory=dict)


class BatchError(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    index: int
    item: Any = None
    error: Exception


class BatchOutcome(BaseModel):
    """Per-item results of a bounded batch run; every input index lands in exactly one list"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    success: List[Any] = Field(default_factory=list)
    success_indices: List[int] = Field(default_factory=list)
    errors: List[BatchError] = Field(default_factory=list)

    @property
    def total_processed(self) -> int:
        return len(self.success) + len(self.errors)

    @property
    def total_errors(self) -> int:
        return len(self.errors)


class MatrixPair(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    row: Any
    col: Any
    row_index: int
    col_index: int


class MatrixCell(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    row_index: int
    col_index: int
    value: Any = None


class ItemError(BaseModel):
    """Diagnostic entry for one failed extraction or pair scoring"""
    stage: str  # extraction | matching
    index: int
    label: str = ""
    kind: Optional[DocumentKind] = None
    jd_index: Optional[int] = None
    resume_index: Optional[int] = None
    message: str


class MatchRunResult(BaseModel):
    results: List[MatchRecord] = Field(default_factory=list)
    extraction_errors: List[ItemError] = Field(default_factory=list)
    match_errors: List[ItemError] = Field(default_factory=list)
    total_jds: int = 0
    total_resumes: int = 0
    total_combinations: int = 0
    filtered_out: int = 0

    @property
    def best_match(self) -> Optional[MatchRecord]:
        return self.results[0] if self.results else None
