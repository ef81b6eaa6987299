import re
from typing import Any, Dict, List

from hrmatch.helpers.parsing import extract_document_text
from hrmatch.helpers.prompts import JD_EXTRACTION_PROMPT, RESUME_EXTRACTION_PROMPT
from hrmatch.helpers.recovery import recover_structured_output
from hrmatch.models.models import DocumentBlob, DocumentKind, JobDescriptionData, ResumeData
from hrmatch.utils.exceptions import ExtractionError, MalformedOutputError
from hrmatch.utils.logging_config import get_logger

logger = get_logger(__name__)

EXTRACTION_TEMPERATURE = 0.3
EXTRACTION_MAX_TOKENS = 2048


def _as_text(x: Any) -> str:
    if x is None:
        return ""
    if isinstance(x, list):
        # join list of sentences or tokens into one paragraph
        return " ".join([str(t).strip() for t in x if str(t).strip()])
    return str(x).strip()


def _as_list(x: Any) -> List[str]:
    if x is None:
        return []
    if isinstance(x, str):
        # split on commas/semicolons; normalize tokens
        parts = [p.strip() for p in x.replace(";", ",").split(",")]
        return [p for p in parts if p]
    if isinstance(x, list):
        out = []
        for t in x:
            if isinstance(t, dict):
                t = _describe_entry(t)
            t = str(t).strip()
            if t:
                out.append(t)
        return out
    return []


def _describe_entry(entry: Dict[str, Any]) -> str:
    # experience entries sometimes come back as {"role", "company", "duration"}
    role = _as_text(entry.get("role") or entry.get("title"))
    company = _as_text(entry.get("company"))
    duration = _as_text(entry.get("duration"))
    text = " at ".join(p for p in (role, company) if p)
    if duration:
        text = f"{text} ({duration})" if text else duration
    return text or _as_text(list(entry.values()))


def _as_years(x: Any) -> float:
    if isinstance(x, list):
        # sometimes model returns ["6"]; take first
        x = x[0] if x else None
    if x is None or x == "":
        return 0.0
    if isinstance(x, (int, float)) and not isinstance(x, bool):
        return max(0.0, float(x))
    m = re.search(r"\d+(?:\.\d+)?", str(x))
    return float(m.group()) if m else 0.0


def normalize_jd(data: Dict[str, Any]) -> JobDescriptionData:
    return JobDescriptionData(
        title=_as_text(data.get("title")),
        company=_as_text(data.get("company")),
        location=_as_text(data.get("location")),
        salary=_as_text(data.get("salary")),
        requirements=_as_list(data.get("requirements")),
        responsibilities=_as_list(data.get("responsibilities")),
        skills=_as_list(data.get("skills")),
        industrial_experience=_as_list(data.get("industrialExperience")),
        domain_experience=_as_list(data.get("domainExperience")),
        required_industrial_experience_years=_as_years(data.get("requiredIndustrialExperienceYears")),
        required_domain_experience_years=_as_years(data.get("requiredDomainExperienceYears")),
    )


def normalize_resume(data: Dict[str, Any]) -> ResumeData:
    email = _as_text(data.get("email"))
    phone = _as_text(data.get("phone"))
    return ResumeData(
        name=_as_text(data.get("name")),
        email=email or None,
        phone=phone or None,
        skills=_as_list(data.get("skills")),
        experience=_as_list(data.get("experience")),
        education=_as_list(data.get("education")),
        certifications=_as_list(data.get("certifications")),
        total_industrial_experience_years=_as_years(data.get("totalIndustrialExperienceYears")),
        total_domain_experience_years=_as_years(data.get("totalDomainExperienceYears")),
    )


async def extract_document(inference, kind: DocumentKind, blob: DocumentBlob) -> Dict[str, Any]:
    """Text of the upload -> model -> recovered JSON -> normalized fields."""
    text = extract_document_text(blob.content, blob.label)
    if not text:
        raise ExtractionError(
            "No text could be extracted from document",
            document_label=blob.label,
            document_kind=kind.value,
        )

    prompt = JD_EXTRACTION_PROMPT if kind == DocumentKind.JD else RESUME_EXTRACTION_PROMPT
    response = await inference.complete(prompt, text, EXTRACTION_TEMPERATURE, EXTRACTION_MAX_TOKENS)

    data = recover_structured_output(response)
    if not isinstance(data, dict):
        raise MalformedOutputError("Expected a JSON object from extraction", raw_text=response)

    if kind == DocumentKind.JD:
        normalized = normalize_jd(data)
        logger.debug(f"JD extracted from {blob.label}: {normalized.title!r}")
    else:
        normalized = normalize_resume(data)
        logger.debug(f"Resume extracted from {blob.label}: {normalized.name!r}")
    return normalized.model_dump()
