"""Schemas for PR scans, results and security summaries"""
from datetime import datetime
from typing import Dict, List, Optional

from .common import CamelModel


class ScanRequest(CamelModel):
    """Body of POST /pull-requests/{id}/scan"""
    scan_type: str = "diff"


class ScanStartResponse(CamelModel):
    job_id: int
    status: str


class ScanJobResponse(CamelModel):
    id: int
    pull_request_id: int
    repository_id: int
    scan_type: str
    status: str
    base_commit: Optional[str] = None
    head_commit: Optional[str] = None
    trigger: Optional[str] = None
    files_total: int = 0
    files_scanned: int = 0
    files_skipped: int = 0
    resume_count: int = 0
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class VulnerabilityResponse(CamelModel):
    category: str
    severity: str
    start_line: int
    end_line: int
    title: str = ""
    description: str = ""
    cwe_id: Optional[str] = None
    owasp_category: Optional[str] = None
    confidence: Optional[float] = None


class ScanResultResponse(CamelModel):
    id: int
    file_path: str
    change_type: str
    added_vulnerabilities: List[VulnerabilityResponse] = []
    fixed_vulnerabilities: List[VulnerabilityResponse] = []
    unchanged_vulnerabilities: List[VulnerabilityResponse] = []
    scan_metadata: Optional[Dict] = None


class SecuritySummaryResponse(CamelModel):
    job_id: int
    total_added: int
    total_fixed: int
    total_unchanged: int
    added_by_severity: Dict[str, int]
    fixed_by_severity: Dict[str, int]
    score_before: int
    score_after: int
    recommendation: str
    created_at: Optional[datetime] = None


class ScanDetailsResponse(CamelModel):
    job: ScanJobResponse
    results: List[ScanResultResponse]
    summary: Optional[SecuritySummaryResponse] = None
