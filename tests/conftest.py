"""Shared fixtures for Policy Assessor tests."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import pytest

from assessor.compliance.loader import build_framework
from assessor.models.analysis import AnalysisResult, AnalysisStatus
from assessor.models.framework import CoverageLevel, Framework, PolicyControlMapping


def make_mapping(
    control_id: str,
    coverage: str,
    policy_id: str = "POL-1",
    mapping_id: Optional[str] = None,
    verified: bool = False,
) -> PolicyControlMapping:
    return PolicyControlMapping(
        id=mapping_id or f"{policy_id}:{control_id}",
        policy_id=policy_id,
        control_id=control_id,
        coverage=CoverageLevel(coverage),
        verified=verified,
    )


@pytest.fixture
def mapping():
    """Factory for PolicyControlMapping records."""
    return make_mapping


@pytest.fixture
def framework_dict() -> dict:
    """Two categories: A with controls A1, A2 and B with control B1."""
    return {
        "id": "fw-1",
        "code": "FW1",
        "name": "Test Framework",
        "version": "1.0",
        "categories": [
            {
                "code": "A",
                "name": "Access Control",
                "controls": [
                    {"code": "A1", "title": "Limit access", "description": "Limit system access."},
                    {"code": "A2", "title": "Least privilege", "description": "Apply least privilege."},
                ],
            },
            {
                "code": "B",
                "name": "Backup",
                "controls": [
                    {"code": "B1", "title": "Backups", "description": "Back up data daily."},
                ],
            },
        ],
    }


@pytest.fixture
def framework(framework_dict: dict) -> Framework:
    return build_framework(framework_dict)


@pytest.fixture
def scenario_mappings() -> list[PolicyControlMapping]:
    """A1 full, A2 unmapped, B1 partial."""
    return [
        make_mapping("A1", "full", policy_id="POL-ACCESS"),
        make_mapping("B1", "partial", policy_id="POL-BACKUP"),
    ]


@pytest.fixture
def nested_framework() -> Framework:
    return build_framework({
        "id": "nested",
        "code": "NST",
        "name": "Nested Framework",
        "categories": [
            {
                "code": "GOV",
                "name": "Governance",
                "high_priority": True,
                "controls": [{"code": "GOV-1", "title": "Charter"}],
                "categories": [
                    {
                        "code": "GOV.RM",
                        "name": "Risk Management",
                        "policy_type": "Risk Management Policy",
                        "controls": [
                            {"code": "GOV.RM-1", "title": "Risk register"},
                            {"code": "GOV.RM-2", "title": "Risk appetite"},
                        ],
                    },
                    {"code": "GOV.EMPTY", "name": "Placeholder"},
                ],
            },
            {
                "code": "OPS",
                "name": "Operations",
                "controls": [
                    {"code": "OPS-2", "title": "Patching", "sort_order": 2},
                    {"code": "OPS-1", "title": "Monitoring", "sort_order": 1},
                ],
            },
        ],
    })


@pytest.fixture
def completed_analysis(framework: Framework, scenario_mappings) -> AnalysisResult:
    from assessor.compliance.pipeline import run_pipeline

    outcome = run_pipeline(framework, scenario_mappings)
    now = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)
    return AnalysisResult(
        id="analysis-1",
        framework_id=framework.id,
        status=AnalysisStatus.COMPLETED,
        triggered_by="user-1",
        created_at=now,
        started_at=now,
        completed_at=now,
        **outcome.model_dump(),
    )


FRAMEWORK_YAML = """\
id: fw-1
code: FW1
name: Test Framework
version: "1.0"
categories:
  - code: A
    name: Access Control
    high_priority: true
    controls:
      - code: A1
        title: Limit access
      - code: A2
        title: Least privilege
  - code: B
    name: Backup
    controls:
      - code: B1
        title: Backups
"""

MAPPINGS_YAML = """\
framework_id: fw-1
mappings:
  - id: m1
    policy_id: POL-ACCESS
    control_id: A1
    coverage: full
    verified: true
  - id: m2
    policy_id: POL-BACKUP
    control_id: B1
    coverage: partial
"""


@pytest.fixture
def tmp_project(tmp_path: Path) -> Path:
    """Create a minimal project directory."""
    project = tmp_path / "test-project"
    project.mkdir()
    return project


@pytest.fixture
def initialized_project(tmp_project: Path) -> Path:
    """Create a project with .assessor initialized, one framework and its mappings."""
    assessor_dir = tmp_project / ".assessor"
    (assessor_dir / "analyses").mkdir(parents=True)
    (assessor_dir / "config.yaml").write_text(
        'project:\n  name: "test-project"\n\nnotifications:\n  provider: none\n',
        encoding="utf-8",
    )
    (tmp_project / "frameworks").mkdir()
    (tmp_project / "frameworks" / "fw-1.yaml").write_text(FRAMEWORK_YAML, encoding="utf-8")
    (tmp_project / "mappings").mkdir()
    (tmp_project / "mappings" / "fw-1.yaml").write_text(MAPPINGS_YAML, encoding="utf-8")
    return tmp_project
