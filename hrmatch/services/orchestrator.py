"""
N x M matching of job descriptions against resumes.

Phase 1 extracts every document through the content-addressable cache; a
failed document is dropped and reported. Phase 2 scores every surviving
(JD, resume) pair; a failed pair becomes a zero-score record instead of
disappearing. Only a side with no surviving documents aborts the run.
"""
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from hrmatch.models.models import (
    BatchOutcome,
    DocumentBlob,
    DocumentKind,
    ExtractionRecord,
    ItemError,
    MatchRecord,
    MatchRunResult,
)
from hrmatch.services.batch import run_batch, run_matrix
from hrmatch.services.cache import ContentAddressableCache, content_hash
from hrmatch.services.extraction import extract_document
from hrmatch.services.matching import (
    build_match_record,
    degraded_match_record,
    pair_fingerprint,
    score_pair,
)
from hrmatch.utils.exceptions import ExtractionError, FatalBatchError, MatchError
from hrmatch.utils.logging_config import PerformanceMonitor, get_logger
from hrmatch.utils.settings import MatchSettings

logger = get_logger(__name__)

MATCH_CACHE_KIND = "match"

BlobInput = Union[DocumentBlob, Tuple[bytes, str]]


def _as_blob(blob: BlobInput) -> DocumentBlob:
    if isinstance(blob, DocumentBlob):
        return blob
    content, label = blob
    return DocumentBlob(content=content, label=label)


class MatchOrchestrator:
    """Extracts, caches and scores N JDs against M resumes"""

    def __init__(self, inference, cache: ContentAddressableCache, settings: Optional[MatchSettings] = None):
        self.inference = inference
        self.cache = cache
        self.settings = settings or MatchSettings()

    async def run(self, jd_blobs: Sequence[BlobInput], resume_blobs: Sequence[BlobInput]) -> MatchRunResult:
        jds = [_as_blob(b) for b in jd_blobs]
        resumes = [_as_blob(b) for b in resume_blobs]
        total_combinations = len(jds) * len(resumes)
        logger.info(
            f"Starting multiple job matching: {len(jds)} JDs x {len(resumes)} resumes "
            f"= {total_combinations} combinations"
        )

        extraction_errors: List[ItemError] = []

        with PerformanceMonitor("JD extraction", logger, threshold_ms=30000):
            jd_records = await self._extract_side(DocumentKind.JD, jds, extraction_errors)
        if not jd_records:
            raise FatalBatchError(
                "All job descriptions failed extraction",
                side=DocumentKind.JD.value,
                errors=[e.model_dump(mode="json") for e in extraction_errors],
            )

        with PerformanceMonitor("Resume extraction", logger, threshold_ms=30000):
            resume_records = await self._extract_side(DocumentKind.RESUME, resumes, extraction_errors)
        if not resume_records:
            raise FatalBatchError(
                "All resumes failed extraction",
                side=DocumentKind.RESUME.value,
                errors=[e.model_dump(mode="json") for e in extraction_errors],
            )

        logger.info(f"Extraction completed: {len(jd_records)} JDs, {len(resume_records)} resumes survived")

        with PerformanceMonitor("Pair matching", logger, threshold_ms=60000):
            results, match_errors = await self._match_all(jd_records, resume_records)

        filtered_out = 0
        matching = self.settings.matching
        if matching.filter_low_scores:
            kept = [r for r in results if r.score >= matching.minimum_score]
            filtered_out = len(results) - len(kept)
            results = kept

        results.sort(key=lambda r: (-r.score, r.jd_index, r.resume_index))

        logger.info(
            f"Matching completed: {len(results)} results, {filtered_out} filtered out, "
            f"{len(extraction_errors)} extraction errors, {len(match_errors)} match errors"
        )
        return MatchRunResult(
            results=results,
            extraction_errors=extraction_errors,
            match_errors=match_errors,
            total_jds=len(jds),
            total_resumes=len(resumes),
            total_combinations=total_combinations,
            filtered_out=filtered_out,
        )

    async def extract(self, kind: DocumentKind, blob: BlobInput) -> ExtractionRecord:
        """Cached extraction of one document"""
        blob = _as_blob(blob)

        async def compute() -> Dict[str, Any]:
            data = await extract_document(self.inference, kind, blob)
            record = ExtractionRecord(
                kind=kind,
                source_label=blob.label,
                content_hash=content_hash(blob.content),
                data=data,
            )
            return record.model_dump(mode="json")

        cached = await self.cache.get_or_compute(
            kind.value, blob.content, blob.label, compute,
            self.settings.cache.extraction_ttl_seconds,
        )
        return ExtractionRecord.model_validate(cached)

    async def _extract_side(
        self,
        kind: DocumentKind,
        blobs: List[DocumentBlob],
        errors: List[ItemError],
    ) -> List[Tuple[int, ExtractionRecord]]:
        label = "JD" if kind == DocumentKind.JD else "Resume"

        async def task(blob: DocumentBlob, index: int) -> ExtractionRecord:
            try:
                return await self.extract(kind, blob)
            except ExtractionError as e:
                e.document_index = index
                e.details["document_index"] = index
                raise
            except Exception as e:
                raise ExtractionError(
                    f"{label} extraction failed: {e}",
                    document_index=index,
                    document_label=blob.label,
                    document_kind=kind.value,
                    cause=e,
                ) from e

        def on_error(error: Exception, blob: DocumentBlob, index: int) -> None:
            logger.error(f"{label} extraction failed (index={index}, label={blob.label}): {error}")

        outcome: BatchOutcome = await run_batch(
            blobs, task,
            concurrency=self.settings.processing.extraction_concurrency,
            on_error=on_error,
        )

        for err in outcome.errors:
            errors.append(ItemError(
                stage="extraction",
                kind=kind,
                index=err.index,
                label=err.item.label,
                message=str(err.error),
            ))
        return list(zip(outcome.success_indices, outcome.success))

    async def _score(self, jd: ExtractionRecord, resume: ExtractionRecord) -> Dict[str, Any]:
        async def compute() -> Dict[str, Any]:
            return await score_pair(self.inference, jd.data, resume.data)

        return await self.cache.get_or_compute(
            MATCH_CACHE_KIND, pair_fingerprint(jd.data, resume.data), "", compute,
            self.settings.cache.match_ttl_seconds,
        )

    async def _match_all(
        self,
        jd_records: List[Tuple[int, ExtractionRecord]],
        resume_records: List[Tuple[int, ExtractionRecord]],
    ) -> Tuple[List[MatchRecord], List[ItemError]]:
        minimum_score = self.settings.matching.minimum_score
        log_settings = self.settings.logging

        async def task(jd_entry, resume_entry, _row: int, _col: int) -> MatchRecord:
            jd_index, jd = jd_entry
            resume_index, resume = resume_entry
            try:
                analysis = await self._score(jd, resume)
            except Exception as e:
                raise MatchError(
                    f"Matching failed: {e}",
                    jd_index=jd_index,
                    resume_index=resume_index,
                    cause=e,
                ) from e
            record = build_match_record(jd_index, resume_index, jd.data, resume.data, analysis, minimum_score)
            logger.debug(
                f"Scored {record.candidate_name!r} against {record.jd_title!r}: {record.score}"
            )
            return record

        def on_progress(processed: int, total: int) -> None:
            if log_settings.enable_progress and (processed % log_settings.progress_interval == 0 or processed == total):
                logger.info(f"Matching progress: {processed}/{total} ({round(processed / total * 100)}%)")

        def on_error(error: Exception, pair, index: int) -> None:
            logger.error(
                f"Match processing failed (jd={pair.row[1].source_label}, "
                f"resume={pair.col[1].source_label}, index={index}): {error}"
            )

        outcome = await run_matrix(
            jd_records, resume_records, task,
            concurrency=self.settings.processing.match_concurrency,
            mode=self.settings.processing.matrix_mode,
            on_progress=on_progress,
            on_error=on_error,
        )

        results: List[MatchRecord] = [cell.value for cell in outcome.success]
        match_errors: List[ItemError] = []
        for err in outcome.errors:
            jd_index, jd = err.item.row
            resume_index, resume = err.item.col
            results.append(degraded_match_record(jd_index, resume_index, jd.data, resume.data, str(err.error)))
            match_errors.append(ItemError(
                stage="matching",
                index=err.index,
                label=f"{jd.source_label} x {resume.source_label}",
                jd_index=jd_index,
                resume_index=resume_index,
                message=str(err.error),
            ))
        return results, match_errors
