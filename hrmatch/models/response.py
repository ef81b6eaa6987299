# models/response.py
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone

from hrmatch.models.models import ItemError, MatchRunResult


class MatchResult(BaseModel):
    jd_index: int
    resume_index: int
    jd_title: str
    candidate_name: str
    match_score: float
    relevant: bool
    matched_skills: List[str]
    unmatched_skills: List[str]
    strengths: List[str]
    recommendations: List[str]
    detailed_analysis: Dict[str, Any]


class BestMatch(BaseModel):
    jd_title: str
    candidate_name: str
    match_score: float


class MatchSummary(BaseModel):
    total_jds: int
    total_resumes: int
    total_combinations: int
    returned_matches: int
    filtered_out: int
    minimum_score: int
    filtering_enabled: bool
    best_match: Optional[BestMatch] = None
    message: Optional[str] = None


class MultipleMatchResponse(BaseModel):
    success: bool = True
    summary: MatchSummary
    matches: List[MatchResult]
    extraction_errors: List[ItemError] = []
    match_errors: List[ItemError] = []
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_run(cls, run: MatchRunResult, minimum_score: int, filtering_enabled: bool) -> "MultipleMatchResponse":
        best = run.best_match
        summary = MatchSummary(
            total_jds=run.total_jds,
            total_resumes=run.total_resumes,
            total_combinations=run.total_combinations,
            returned_matches=len(run.results),
            filtered_out=run.filtered_out,
            minimum_score=minimum_score,
            filtering_enabled=filtering_enabled,
            best_match=BestMatch(
                jd_title=best.jd_title,
                candidate_name=best.candidate_name,
                match_score=best.score,
            ) if best else None,
        )
        if not run.results:
            summary.message = (
                f"No matches returned. All {run.total_combinations} combinations were filtered out "
                f"(minimum score: {minimum_score})."
            )
        return cls(
            summary=summary,
            matches=[
                MatchResult(
                    jd_index=r.jd_index,
                    resume_index=r.resume_index,
                    jd_title=r.jd_title,
                    candidate_name=r.candidate_name,
                    match_score=r.score,
                    relevant=r.relevant,
                    matched_skills=r.matched_skills,
                    unmatched_skills=r.unmatched_skills,
                    strengths=r.strengths,
                    recommendations=r.recommendations,
                    detailed_analysis=r.raw_analysis,
                )
                for r in run.results
            ],
            extraction_errors=run.extraction_errors,
            match_errors=run.match_errors,
        )
