"""Tests for the pull request and PR scan endpoints."""

from unittest.mock import patch

import pytest

from prguard.domain.scanning.models import ReconcileResult, Recommendation, SecurityAssessment
from prguard.infra.db.uow import SqlUnitOfWork
from prguard.use_cases.scanning.start_scan import StartScanUseCase
from prguard.wiring.bootstrap import get_start_scan_use_case

from tests.unit.use_cases.conftest import FakeScanDispatcher, vuln


@pytest.mark.asyncio
class TestStartScan:
    async def test_queues_scan(self, client, seed, scan_dispatcher):
        _, pr = seed

        response = await client.post(f"/api/v1/pull-requests/{pr.id}/scan", json={})

        assert response.status_code == 202
        body = response.json()
        assert body["status"] == "pending"
        assert scan_dispatcher.dispatched == [body["jobId"]]

    async def test_conflict_while_active(self, client, seed):
        _, pr = seed
        first = (await client.post(f"/api/v1/pull-requests/{pr.id}/scan", json={})).json()

        response = await client.post(f"/api/v1/pull-requests/{pr.id}/scan", json={})

        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["jobId"] == first["jobId"]
        assert detail["status"] == "pending"

    async def test_unknown_pull_request(self, client, seed):
        response = await client.post("/api/v1/pull-requests/999/scan", json={})
        assert response.status_code == 404

    async def test_unknown_scan_type(self, client, seed):
        _, pr = seed
        response = await client.post(
            f"/api/v1/pull-requests/{pr.id}/scan", json={"scanType": "sideways"}
        )
        assert response.status_code == 400

    async def test_dispatch_failure(self, client, api_app, seed, session_factory):
        _, pr = seed
        api_app.dependency_overrides[get_start_scan_use_case] = lambda: StartScanUseCase(
            dispatcher=FakeScanDispatcher(should_fail=True)
        )

        response = await client.post(f"/api/v1/pull-requests/{pr.id}/scan", json={})

        assert response.status_code == 503
        with SqlUnitOfWork(session_factory) as uow:
            assert uow.scan_jobs.get_active_for_pull_request(pr.id) is None
            [job] = uow.scan_jobs.list_by_status(["failed"])
            assert job.error_message == "Failed to dispatch scan task"


@pytest.mark.asyncio
class TestScanDetails:
    def _completed_job(self, session_factory, pr):
        with SqlUnitOfWork(session_factory) as uow:
            job = uow.scan_jobs.create(
                pull_request_id=pr.id,
                repository_id=pr.repository_id,
                status="completed",
                head_commit="head111",
            )
            uow.scan_results.add(
                job.id,
                "app/db.py",
                "modified",
                ReconcileResult(added=(vuln(title="SQL injection"),)),
                {"detector": "fake"},
            )
            uow.summaries.create(
                job.id,
                SecurityAssessment(100, 85, Recommendation.REVIEW, 1, 0, 0, {"high": 1}, {}),
            )
            uow.commit()
            return job.id

    async def test_job_results_and_summary(self, client, seed, session_factory):
        _, pr = seed
        job_id = self._completed_job(session_factory, pr)

        response = await client.get(f"/api/v1/pr-scans/{job_id}")

        assert response.status_code == 200
        body = response.json()
        assert body["job"]["status"] == "completed"
        [result] = body["results"]
        assert result["filePath"] == "app/db.py"
        assert result["addedVulnerabilities"][0]["title"] == "SQL injection"
        assert result["addedVulnerabilities"][0]["severity"] == "high"
        assert body["summary"]["scoreAfter"] == 85

    async def test_unknown_job(self, client):
        response = await client.get("/api/v1/pr-scans/999")
        assert response.status_code == 404

    async def test_security_summary(self, client, seed, session_factory):
        _, pr = seed
        self._completed_job(session_factory, pr)

        response = await client.get(f"/api/v1/pull-requests/{pr.id}/security-summary")

        assert response.status_code == 200
        assert response.json()["recommendation"] == "review"

    async def test_security_summary_before_first_scan(self, client, seed):
        _, pr = seed
        response = await client.get(f"/api/v1/pull-requests/{pr.id}/security-summary")
        assert response.status_code == 200
        assert response.json() is None

    async def test_security_summary_unknown_pull_request(self, client):
        response = await client.get("/api/v1/pull-requests/999/security-summary")
        assert response.status_code == 404


@pytest.mark.asyncio
class TestPullRequests:
    async def test_get_pull_request(self, client, seed):
        _, pr = seed
        response = await client.get(f"/api/v1/pull-requests/{pr.id}")
        assert response.status_code == 200
        assert response.json()["headCommit"] == "head111"

    async def test_list_filters_status(self, client, seed):
        repo, _ = seed
        response = await client.get(
            f"/api/v1/repositories/{repo.id}/pull-requests", params={"status": "merged"}
        )
        assert response.status_code == 200
        assert response.json() == {"pullRequests": [], "total": 0}

    async def test_list_unknown_repository(self, client):
        response = await client.get("/api/v1/repositories/999/pull-requests")
        assert response.status_code == 404

    async def test_sync_queues_trigger_check(self, client, api_app, seed):
        from prguard.domain.scanning.models import PullRequestSnapshot
        from prguard.use_cases.watching.sync_pull_requests import SyncPullRequestsUseCase
        from prguard.wiring.bootstrap import get_sync_use_case

        from tests.unit.use_cases.conftest import FakeConnector

        repo, _ = seed
        connector = FakeConnector(
            pull_requests={
                "acme/web": [
                    PullRequestSnapshot(8, "Fix", "octocat", "main", "fix", "b", "h", "open")
                ]
            }
        )
        api_app.dependency_overrides[get_sync_use_case] = lambda: SyncPullRequestsUseCase(connector)

        with patch("prguard.tasks.watch_tasks.check_repository.delay") as delay:
            response = await client.post(f"/api/v1/repositories/{repo.id}/sync-prs")

        assert response.status_code == 200
        assert response.json() == {"prsAdded": 1, "prsUpdated": 0, "checkQueued": True}
        delay.assert_called_once_with(repo.id)
