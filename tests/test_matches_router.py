import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, MagicMock

from hrmatch.models.models import ItemError, MatchRecord, MatchRunResult
from hrmatch.utils.exceptions import FatalBatchError
from hrmatch.utils.settings import FileSettings, LimitSettings, MatchSettings


@pytest.fixture
def settings():
    return MatchSettings(
        files=FileSettings(min_size=1, allowed_extensions=[".pdf", ".txt"]),
        limits=LimitSettings(max_jd_files=2, max_resume_files=3, max_combinations=6),
    )


@pytest.fixture
def orchestrator():
    mock = MagicMock()
    mock.run = AsyncMock(return_value=MatchRunResult(
        results=[
            MatchRecord(jd_index=0, resume_index=1, jd_title="Backend Engineer", candidate_name="Ada", score=88, relevant=True),
            MatchRecord(jd_index=0, resume_index=0, jd_title="Backend Engineer", candidate_name="Bob", score=35),
        ],
        extraction_errors=[ItemError(stage="extraction", index=2, label="broken.pdf", message="no text")],
        total_jds=1,
        total_resumes=3,
        total_combinations=3,
    ))
    return mock


@pytest.fixture
def test_app(settings, orchestrator):
    from hrmatch.main import app
    from hrmatch.services.db import get_orchestrator
    from hrmatch.utils.settings import get_settings

    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_settings] = lambda: settings
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(test_app):
    return TestClient(test_app)


def upload(field, name, content=b"document text"):
    return (field, (name, content, "text/plain"))


class TestMultipleJobMatch:
    """Test cases for the multiple match route"""

    def test_successful_match(self, client, orchestrator):
        response = client.post("/api/match/multiple", files=[
            upload("job_descriptions", "backend.txt"),
            upload("resumes", "bob.txt"),
            upload("resumes", "ada.txt"),
            upload("resumes", "broken.pdf"),
        ])

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["summary"]["total_combinations"] == 3
        assert body["summary"]["returned_matches"] == 2
        assert body["summary"]["best_match"]["candidate_name"] == "Ada"
        assert body["matches"][0]["match_score"] == 88
        assert body["extraction_errors"][0]["index"] == 2
        assert "X-Request-ID" in response.headers

        jd_blobs, resume_blobs = orchestrator.run.call_args.args
        assert [b.label for b in jd_blobs] == ["backend.txt"]
        assert [b.label for b in resume_blobs] == ["bob.txt", "ada.txt", "broken.pdf"]
        assert resume_blobs[0].content == b"document text"

    def test_missing_resumes(self, client, orchestrator):
        response = client.post("/api/match/multiple", files=[upload("job_descriptions", "backend.txt")])

        assert response.status_code == 400
        assert "No files provided" in response.json()["detail"]["message"]
        orchestrator.run.assert_not_called()

    def test_bad_extension(self, client, orchestrator):
        response = client.post("/api/match/multiple", files=[
            upload("job_descriptions", "backend.exe"),
            upload("resumes", "ada.txt"),
        ])
        assert response.status_code == 400
        orchestrator.run.assert_not_called()

    def test_too_many_job_descriptions(self, client, orchestrator):
        response = client.post("/api/match/multiple", files=[
            upload("job_descriptions", "a.txt"),
            upload("job_descriptions", "b.txt"),
            upload("job_descriptions", "c.txt"),
            upload("resumes", "ada.txt"),
        ])
        assert response.status_code == 400
        assert "Too many job descriptions" in response.json()["detail"]["message"]

    def test_fatal_batch_error(self, client, orchestrator):
        orchestrator.run.side_effect = FatalBatchError("All job descriptions failed extraction", side="jd")

        response = client.post("/api/match/multiple", files=[
            upload("job_descriptions", "a.txt"),
            upload("resumes", "ada.txt"),
        ])

        assert response.status_code == 500
        assert response.json()["detail"]["error"]["error_code"] == "FATAL_BATCH_ERROR"


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_root(self, client):
        assert client.get("/").json()["status"] == "ok"
