"""Tests for SqlUnitOfWork using in-memory SQLite.

Verifies that all repositories share the same session, that cross-repo
writes commit together, and that commit-time unique violations surface
as DuplicateKeyError.
"""

from __future__ import annotations

import pytest

from prguard.domain.common.errors import DuplicateKeyError
from prguard.domain.watching.models import WatchSettings
from prguard.infra.db.uow import SqlUnitOfWork
from prguard.models.pr_scan import ActiveScanSlot, PRScanJob


class TestSqlUnitOfWork:
    def test_repos_share_session(self, session_factory):
        with SqlUnitOfWork(session_factory) as uow:
            sessions = {
                id(uow.repositories._session),
                id(uow.pull_requests._session),
                id(uow.scan_jobs._session),
                id(uow.scan_results._session),
                id(uow.summaries._session),
                id(uow.watches._session),
                id(uow.notifications._session),
            }
            assert len(sessions) == 1

    def test_cross_repo_transaction(self, session_factory, seed):
        repo, pr = seed

        with SqlUnitOfWork(session_factory) as uow:
            job = uow.scan_jobs.create(pull_request_id=pr.id, repository_id=repo.id)
            uow.scan_jobs.claim_active_slot(pr.id, job.id)
            uow.watches.upsert(5, repo.id, WatchSettings())
            uow.commit()

        with SqlUnitOfWork(session_factory) as uow:
            assert uow.scan_jobs.get_active_for_pull_request(pr.id).id == job.id
            assert len(uow.watches.list_active()) == 1

    def test_uncommitted_work_is_rolled_back(self, session_factory, seed):
        repo, pr = seed

        with pytest.raises(RuntimeError):
            with SqlUnitOfWork(session_factory) as uow:
                uow.scan_jobs.create(pull_request_id=pr.id, repository_id=repo.id)
                raise RuntimeError("boom")

        with SqlUnitOfWork(session_factory) as uow:
            assert uow.scan_jobs.list_by_status(["pending"]) == []

    def test_rows_readable_after_block(self, session_factory, seed):
        repo, pr = seed
        with SqlUnitOfWork(session_factory) as uow:
            job = uow.scan_jobs.create(pull_request_id=pr.id, repository_id=repo.id)
            uow.commit()

        assert job.status == "pending"

    def test_flush_conflict_is_duplicate_key(self, session_factory, seed, session):
        repo, pr = seed
        existing = PRScanJob(pull_request_id=pr.id, repository_id=repo.id, status="pending")
        session.add(existing)
        session.flush()
        session.add(ActiveScanSlot(pull_request_id=pr.id, job_id=existing.id))
        session.commit()

        with SqlUnitOfWork(session_factory) as uow:
            job = uow.scan_jobs.create(pull_request_id=pr.id, repository_id=repo.id)
            with pytest.raises(DuplicateKeyError):
                uow.scan_jobs.claim_active_slot(pr.id, job.id)
