"""
Deployment Report

Architectural Intent:
- Pure projection of a run's status registry into a structured report
- Rendering has no side effects and no clock reads, so rendering the same
  unchanged run twice gives identical output
- write() persists Markdown and JSON renderings into the run directory
"""

from __future__ import annotations
import json
import logging
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Optional
from nixfleet.domain.entities.deployment_run import DeploymentRun, DeploymentStatus

logger = logging.getLogger(__name__)

REPORT_BASENAME = "deployment-report"
NO_LOG = "-"

STATUS_DISPLAY = {
    DeploymentStatus.SUCCESS: "✅ Success",
    DeploymentStatus.FAILED: "❌ Failed",
    DeploymentStatus.DEPLOYING: "🔄 In Progress",
    DeploymentStatus.PENDING: "⏸ Pending",
}


@dataclass(frozen=True)
class ReportRow:
    host: str
    category: str
    status: str
    version: Optional[str]
    health_check: Optional[bool]
    log_ref: str


@dataclass(frozen=True)
class DeploymentReport:
    run_id: str
    timestamp: str
    mode: str
    action: str
    log_dir: str
    total: int
    success: int
    failed: int
    pending: int
    rows: tuple[ReportRow, ...]

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["rows"] = [asdict(r) for r in self.rows]
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    def to_markdown(self) -> str:
        lines = [
            "# Deployment Report",
            f"**ID:** {self.run_id}",
            f"**Date:** {self.timestamp}",
            f"**Mode:** {self.mode}",
            f"**Action:** {self.action}",
            "",
            "## Summary",
            f"- Total Hosts: {self.total}",
            f"- Successful: {self.success}",
            f"- Failed: {self.failed}",
            f"- Pending: {self.pending}",
            "",
            "## Host Details",
            "",
            "| Host | Category | Status | Version | Log File |",
            "|------|----------|--------|---------|----------|",
        ]
        for row in self.rows:
            display = STATUS_DISPLAY[DeploymentStatus(row.status)]
            lines.append(
                f"| {row.host} | {row.category} | {display} "
                f"| {row.version or 'unknown'} | {row.log_ref} |"
            )
        lines += [
            "",
            "## Logs",
            f"All logs available in: `{self.log_dir}/`",
            "",
        ]
        return "\n".join(lines)


class ReportGenerator:
    def render(self, run: DeploymentRun) -> DeploymentReport:
        rows = []
        for record in run.records:
            entry = run.registry.entry(record.id)
            # pending hosts were never attempted and have no log
            log_ref = NO_LOG
            if entry.status is not DeploymentStatus.PENDING:
                log_ref = run.log_path("deploy", record.id).name
            rows.append(
                ReportRow(
                    host=record.id,
                    category=record.category.value,
                    status=entry.status.value,
                    version=entry.version,
                    health_check=entry.health_check,
                    log_ref=log_ref,
                )
            )
        counts = run.registry.counts_by_status()
        return DeploymentReport(
            run_id=run.id,
            timestamp=run.started_at.isoformat(),
            mode=run.mode.value,
            action=run.action.value,
            log_dir=str(run.log_dir),
            total=len(rows),
            success=counts[DeploymentStatus.SUCCESS],
            failed=counts[DeploymentStatus.FAILED],
            pending=counts[DeploymentStatus.PENDING],
            rows=tuple(rows),
        )

    def write(self, run: DeploymentRun) -> DeploymentReport:
        report = self.render(run)
        run.log_dir.mkdir(parents=True, exist_ok=True)
        markdown_path = run.log_dir / f"{REPORT_BASENAME}.md"
        markdown_path.write_text(report.to_markdown(), encoding="utf-8")
        (run.log_dir / f"{REPORT_BASENAME}.json").write_text(
            report.to_json(), encoding="utf-8"
        )
        logger.info("Report saved to %s", markdown_path)
        return report
