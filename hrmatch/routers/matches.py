# routers/matches.py
from typing import List, Optional

from fastapi import APIRouter, Depends, File, UploadFile

from hrmatch.models.models import DocumentBlob
from hrmatch.models.response import MultipleMatchResponse
from hrmatch.services.db import get_orchestrator
from hrmatch.services.orchestrator import MatchOrchestrator
from hrmatch.utils.exceptions import HRMatchBaseException, map_to_http_exception
from hrmatch.utils.logging_config import get_logger, log_api_call
from hrmatch.utils.settings import MatchSettings, get_settings
from hrmatch.utils.validators import validate_batch_limits, validate_files

router = APIRouter(tags=["matching"])
logger = get_logger(__name__)


async def _read_uploads(files: List[UploadFile]) -> List[DocumentBlob]:
    blobs = []
    for f in files:
        content = await f.read()
        blobs.append(DocumentBlob(content=content, label=f.filename or ""))
    return blobs


@router.post("/multiple", response_model=MultipleMatchResponse)
@log_api_call("multiple job match")
async def multiple_job_match(
    job_descriptions: Optional[List[UploadFile]] = File(None),
    resumes: Optional[List[UploadFile]] = File(None),
    orchestrator: MatchOrchestrator = Depends(get_orchestrator),
    settings: MatchSettings = Depends(get_settings),
):
    """Match every uploaded job description against every uploaded resume"""
    try:
        jd_blobs = await _read_uploads(job_descriptions or [])
        resume_blobs = await _read_uploads(resumes or [])

        validate_files([(b.label, len(b.content)) for b in jd_blobs], settings.files, field="job_descriptions")
        validate_files([(b.label, len(b.content)) for b in resume_blobs], settings.files, field="resumes")
        validate_batch_limits(len(jd_blobs), len(resume_blobs), settings.limits)

        logger.info(
            f"Processing {len(jd_blobs)} JDs against {len(resume_blobs)} resumes "
            f"({len(jd_blobs) * len(resume_blobs)} combinations)"
        )
        run = await orchestrator.run(jd_blobs, resume_blobs)
    except HRMatchBaseException as exc:
        logger.error(f"Multiple job match failed: {exc.message}", extra={"error_code": exc.error_code})
        raise map_to_http_exception(exc)

    return MultipleMatchResponse.from_run(
        run,
        minimum_score=settings.matching.minimum_score,
        filtering_enabled=settings.matching.filter_low_scores,
    )
