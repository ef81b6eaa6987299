import json

import pytest

from hrmatch.helpers.prompts import JD_EXTRACTION_PROMPT, MATCHING_PROMPT, RESUME_EXTRACTION_PROMPT
from hrmatch.models.models import DocumentBlob, DocumentKind, MatrixMode
from hrmatch.services.cache import ContentAddressableCache, InMemoryCacheStore
from hrmatch.services.orchestrator import MatchOrchestrator
from hrmatch.utils.exceptions import FatalBatchError
from hrmatch.utils.settings import MatchSettings

SCORES = {"Alice": 90, "Bob": 40, "Carol": 70}
JD_PENALTY = {"Backend Engineer": 0, "Data Analyst": 15}


class FakeInference:
    """Answers extraction and matching prompts from the document text itself"""

    def __init__(self, fail_jds=False, fail_resume=None, fail_match_for=None):
        self.fail_jds = fail_jds
        self.fail_resume = fail_resume
        self.fail_match_for = fail_match_for
        self.calls = {"jd": 0, "resume": 0, "match": 0}

    async def complete(self, system_prompt, user_prompt, temperature=0.3, max_tokens=1024):
        if system_prompt == JD_EXTRACTION_PROMPT:
            self.calls["jd"] += 1
            if self.fail_jds:
                raise RuntimeError("JD model unavailable")
            return json.dumps({"title": user_prompt, "skills": ["Python", "SQL"]})

        if system_prompt == RESUME_EXTRACTION_PROMPT:
            self.calls["resume"] += 1
            if user_prompt == self.fail_resume:
                raise RuntimeError(f"cannot read {user_prompt}")
            return "```json\n" + json.dumps({"name": user_prompt, "skills": ["Python"]}) + "\n```"

        assert system_prompt == MATCHING_PROMPT
        self.calls["match"] += 1
        name = next(n for n in SCORES if f"Name: {n}" in user_prompt)
        if name == self.fail_match_for:
            return "Sorry, I cannot score this candidate."
        title = next(t for t in JD_PENALTY if f"Title: {t}" in user_prompt)
        score = SCORES[name] - JD_PENALTY[title]
        return json.dumps({
            "matchScore": score,
            "relevantMatch": score >= 60,
            "skillsetMatch": {"matchedSkills": ["Python"], "criticalMissingSkills": ["SQL"]},
            "strengths": ["Python"],
            "recommendations": [],
        })


def jd_blobs():
    return [(b"Backend Engineer", "backend.txt"), (b"Data Analyst", "analyst.txt")]


def resume_blobs():
    return [
        DocumentBlob(content=b"Alice", label="alice.txt"),
        DocumentBlob(content=b"Bob", label="bob.txt"),
        DocumentBlob(content=b"Carol", label="carol.txt"),
    ]


def make_orchestrator(inference, settings=None, cache=None):
    return MatchOrchestrator(inference, cache or ContentAddressableCache(InMemoryCacheStore()), settings)


class TestMatchOrchestrator:

    @pytest.mark.asyncio
    async def test_two_by_three_sorted_by_score(self):
        inference = FakeInference()
        run = await make_orchestrator(inference).run(jd_blobs(), resume_blobs())

        assert len(run.results) == 6
        scores = [r.score for r in run.results]
        assert scores == sorted(scores, reverse=True)
        assert {(r.jd_index, r.resume_index) for r in run.results} == {(j, r) for j in range(2) for r in range(3)}
        assert run.best_match.candidate_name == "Alice"
        assert run.best_match.jd_title == "Backend Engineer"
        assert run.total_combinations == 6
        assert run.extraction_errors == []
        assert run.match_errors == []
        assert inference.calls == {"jd": 2, "resume": 3, "match": 6}

    @pytest.mark.asyncio
    async def test_ties_break_on_indices(self):
        inference = FakeInference()
        settings = MatchSettings()
        run = await make_orchestrator(inference, settings).run(
            [(b"Backend Engineer", "a.txt"), (b"Backend Engineer", "b.txt")],
            [(b"Alice", "alice.txt")],
        )
        assert [(r.jd_index, r.resume_index) for r in run.results] == [(0, 0), (1, 0)]

    @pytest.mark.asyncio
    async def test_failed_resume_is_dropped_and_reported(self):
        inference = FakeInference(fail_resume="Bob")
        run = await make_orchestrator(inference).run(jd_blobs(), resume_blobs())

        assert len(run.results) == 2 * 2
        assert {r.resume_index for r in run.results} == {0, 2}
        assert len(run.extraction_errors) == 1
        error = run.extraction_errors[0]
        assert error.index == 1
        assert error.stage == "extraction"
        assert error.kind == DocumentKind.RESUME
        assert error.label == "bob.txt"

    @pytest.mark.asyncio
    async def test_all_jds_failing_is_fatal(self):
        inference = FakeInference(fail_jds=True)

        with pytest.raises(FatalBatchError) as exc_info:
            await make_orchestrator(inference).run(jd_blobs(), resume_blobs())

        assert exc_info.value.side == "jd"
        assert len(exc_info.value.errors) == 2
        assert inference.calls["match"] == 0
        assert inference.calls["resume"] == 0

    @pytest.mark.asyncio
    async def test_all_resumes_failing_is_fatal(self):
        inference = FakeInference()
        with pytest.raises(FatalBatchError) as exc_info:
            await make_orchestrator(inference).run(jd_blobs(), [(b"   ", "blank.txt")])
        assert exc_info.value.side == "resume"
        assert inference.calls["match"] == 0

    @pytest.mark.asyncio
    async def test_failed_pair_becomes_degraded_record(self):
        inference = FakeInference(fail_match_for="Bob")
        run = await make_orchestrator(inference).run(jd_blobs(), resume_blobs())

        assert len(run.results) == 6
        bob = [r for r in run.results if r.candidate_name == "Bob"]
        assert len(bob) == 2
        assert all(r.score == 0 and not r.relevant for r in bob)
        assert all("error" in r.raw_analysis for r in bob)
        assert len(run.match_errors) == 2
        assert {(e.jd_index, e.resume_index) for e in run.match_errors} == {(0, 1), (1, 1)}
        assert run.match_errors[0].label.endswith("x bob.txt")

    @pytest.mark.asyncio
    async def test_degraded_pairs_are_retried_on_next_run(self):
        cache = ContentAddressableCache(InMemoryCacheStore())
        inference = FakeInference(fail_match_for="Bob")
        await make_orchestrator(inference, cache=cache).run(jd_blobs(), resume_blobs())

        inference.fail_match_for = None
        inference.calls = {"jd": 0, "resume": 0, "match": 0}
        run = await make_orchestrator(inference, cache=cache).run(jd_blobs(), resume_blobs())

        assert inference.calls == {"jd": 0, "resume": 0, "match": 2}
        assert run.match_errors == []

    @pytest.mark.asyncio
    async def test_second_run_is_served_from_cache(self):
        cache = ContentAddressableCache(InMemoryCacheStore())
        inference = FakeInference()
        first = await make_orchestrator(inference, cache=cache).run(jd_blobs(), resume_blobs())
        inference.calls = {"jd": 0, "resume": 0, "match": 0}

        second = await make_orchestrator(inference, cache=cache).run(jd_blobs(), resume_blobs())

        assert inference.calls == {"jd": 0, "resume": 0, "match": 0}
        assert [r.score for r in second.results] == [r.score for r in first.results]

    @pytest.mark.asyncio
    async def test_renamed_files_reuse_cached_pair_scores(self):
        cache = ContentAddressableCache(InMemoryCacheStore())
        inference = FakeInference()
        first = await make_orchestrator(inference, cache=cache).run(jd_blobs(), resume_blobs())
        inference.calls = {"jd": 0, "resume": 0, "match": 0}

        renamed_jds = [(content, f"renamed-{label}") for content, label in jd_blobs()]
        renamed_resumes = [(b.content, f"renamed-{b.label}") for b in resume_blobs()]
        second = await make_orchestrator(inference, cache=cache).run(renamed_jds, renamed_resumes)

        assert inference.calls["jd"] == 2
        assert inference.calls["resume"] == 3
        assert inference.calls["match"] == 0
        assert [(r.jd_index, r.resume_index, r.score) for r in second.results] == \
            [(r.jd_index, r.resume_index, r.score) for r in first.results]

    @pytest.mark.asyncio
    async def test_duplicate_upload_is_extracted_once(self):
        inference = FakeInference()
        settings = MatchSettings()
        settings.processing.extraction_concurrency = 3
        await make_orchestrator(inference, settings).run(
            jd_blobs(),
            [(b"Alice", "alice.txt"), (b"Alice", "alice.txt")],
        )
        assert inference.calls["resume"] == 1

    @pytest.mark.asyncio
    async def test_low_scores_filtered_when_enabled(self):
        settings = MatchSettings()
        settings.matching.filter_low_scores = True
        run = await make_orchestrator(FakeInference(), settings).run(jd_blobs(), resume_blobs())

        assert all(r.score >= 60 for r in run.results)
        # Bob scores 40 and 25, Carol 55 against the analyst role
        assert run.filtered_out == 3
        assert len(run.results) == 3

    @pytest.mark.asyncio
    async def test_flattened_mode_matches_row_major(self):
        row_major = await make_orchestrator(FakeInference()).run(jd_blobs(), resume_blobs())

        settings = MatchSettings()
        settings.processing.matrix_mode = MatrixMode.FLATTENED
        settings.processing.match_concurrency = 4
        flattened = await make_orchestrator(FakeInference(), settings).run(jd_blobs(), resume_blobs())

        def key(run):
            return [(r.jd_index, r.resume_index, r.score) for r in run.results]

        assert key(flattened) == key(row_major)

    @pytest.mark.asyncio
    async def test_extract_single_document(self):
        orchestrator = make_orchestrator(FakeInference())
        record = await orchestrator.extract(DocumentKind.JD, (b"Data Analyst", "analyst.txt"))

        assert record.kind == DocumentKind.JD
        assert record.source_label == "analyst.txt"
        assert record.data["title"] == "Data Analyst"
        assert len(record.content_hash) == 64
