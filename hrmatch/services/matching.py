import json
from typing import Any, Dict, Iterable, List

from hrmatch.helpers.prompts import MATCHING_PROMPT, MATCH_USER_TEMPLATE
from hrmatch.helpers.recovery import recover_structured_output
from hrmatch.models.models import MatchRecord
from hrmatch.utils.exceptions import MalformedOutputError

MATCH_TEMPERATURE = 0.3
MATCH_MAX_TOKENS = 1024


def _joined(values: Iterable[Any]) -> str:
    values = [str(v) for v in values or [] if str(v).strip()]
    return ", ".join(values) if values else "Not specified"


def ordered_unique(values: Any) -> List[str]:
    if not isinstance(values, list):
        return []
    seen = set()
    out = []
    for v in values:
        s = str(v).strip()
        if s and s.lower() not in seen:
            seen.add(s.lower())
            out.append(s)
    return out


def clamp_score(value: Any) -> float:
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 0.0
    if score != score:  # NaN
        return 0.0
    return max(0.0, min(100.0, score))


def is_relevant(analysis: Dict[str, Any], score: float, minimum_score: float) -> bool:
    return analysis.get("relevantMatch", True) is not False and score >= minimum_score


def pair_fingerprint(jd_data: Dict[str, Any], resume_data: Dict[str, Any]) -> bytes:
    """Canonical bytes of both extractions; filenames play no part."""
    jd_json = json.dumps(jd_data, sort_keys=True, separators=(",", ":"), default=str)
    resume_json = json.dumps(resume_data, sort_keys=True, separators=(",", ":"), default=str)
    return f"{jd_json}\n{resume_json}".encode("utf-8")


def build_match_prompt(jd: Dict[str, Any], resume: Dict[str, Any]) -> str:
    return MATCH_USER_TEMPLATE.format(
        title=jd.get("title") or "Not specified",
        company=jd.get("company") or "Not specified",
        skills=_joined(jd.get("skills")),
        requirements=_joined(jd.get("requirements")),
        required_industrial_years=jd.get("required_industrial_experience_years") or 0,
        required_domain_years=jd.get("required_domain_experience_years") or 0,
        location=jd.get("location") or "Not specified",
        name=resume.get("name") or "Not specified",
        candidate_skills=_joined(resume.get("skills")),
        experience=_joined(resume.get("experience")),
        education=_joined(resume.get("education")),
        candidate_years=resume.get("total_industrial_experience_years") or 0,
        certifications=_joined(resume.get("certifications")),
    )


async def score_pair(inference, jd: Dict[str, Any], resume: Dict[str, Any]) -> Dict[str, Any]:
    response = await inference.complete(
        MATCHING_PROMPT, build_match_prompt(jd, resume), MATCH_TEMPERATURE, MATCH_MAX_TOKENS
    )
    analysis = recover_structured_output(response)
    if not isinstance(analysis, dict):
        raise MalformedOutputError("Expected a JSON object from matching", raw_text=response)
    return analysis


def build_match_record(
    jd_index: int,
    resume_index: int,
    jd: Dict[str, Any],
    resume: Dict[str, Any],
    analysis: Dict[str, Any],
    minimum_score: float,
) -> MatchRecord:
    score = clamp_score(analysis.get("matchScore"))
    skillset = analysis.get("skillsetMatch") or {}
    if not isinstance(skillset, dict):
        skillset = {}

    raw = dict(analysis)
    raw.update({
        "candidateEmail": resume.get("email"),
        "candidatePhone": resume.get("phone"),
        "candidateCertifications": resume.get("certifications") or [],
        "candidateIndustrialExperienceYears": resume.get("total_industrial_experience_years") or 0,
        "candidateDomainExperienceYears": resume.get("total_domain_experience_years") or 0,
        "requiredIndustrialExperienceYears": jd.get("required_industrial_experience_years") or 0,
        "requiredDomainExperienceYears": jd.get("required_domain_experience_years") or 0,
    })

    return MatchRecord(
        jd_index=jd_index,
        resume_index=resume_index,
        jd_title=jd.get("title") or f"JD {jd_index + 1}",
        candidate_name=resume.get("name") or f"Candidate {resume_index + 1}",
        score=score,
        relevant=is_relevant(analysis, score, minimum_score),
        matched_skills=ordered_unique(skillset.get("matchedSkills")),
        unmatched_skills=ordered_unique(skillset.get("criticalMissingSkills")),
        strengths=ordered_unique(analysis.get("strengths")),
        recommendations=ordered_unique(analysis.get("recommendations")),
        raw_analysis=raw,
    )


def degraded_match_record(
    jd_index: int,
    resume_index: int,
    jd: Dict[str, Any],
    resume: Dict[str, Any],
    reason: str,
) -> MatchRecord:
    """Zero-score stand-in for a pair whose scoring failed"""
    return MatchRecord(
        jd_index=jd_index,
        resume_index=resume_index,
        jd_title=jd.get("title") or f"JD {jd_index + 1}",
        candidate_name=resume.get("name") or f"Candidate {resume_index + 1}",
        score=0.0,
        relevant=False,
        raw_analysis={
            "matchScore": 0,
            "relevantMatch": False,
            "error": reason,
            "rejectionReason": "Unable to analyze - matching failed",
        },
    )
