"""Build extension: vulnerability scanning with trivy."""

from __future__ import annotations

import json
import os
import shutil
from pathlib import Path
from typing import Any

from targetkit.errors import TargetFailure

DEFAULT_SEVERITY = "CRITICAL,HIGH"


def count_vulnerabilities(report: dict[str, Any]) -> int:
    total = 0
    for result in report.get("Results") or []:
        total += len(result.get("Vulnerabilities") or [])
    return total


class TrivyExtension:
    FLAGS = {"--ignore-unfixed": "Ignore unfixed vulnerabilities"}

    def __init__(self, ctx: Any):
        self._ctx = ctx

    def check(self) -> None:
        if shutil.which("trivy") is None:
            raise TargetFailure(
                "Trivy is not installed "
                "(see https://aquasecurity.github.io/trivy/latest/getting-started/installation/)"
            )

    def scan_image(self, image_ref: str, severity: str = DEFAULT_SEVERITY, fmt: str = "table") -> bool:
        """Run a scan; returns False when findings at ``severity`` exist."""

        self.check()
        self._ctx.logger.info("Scanning image: %s (severity: %s)...", image_ref, severity)
        cmd = ["trivy", "image", "--severity", severity, "--format", fmt]
        if self._ctx.is_flag_set("ignore-unfixed"):
            cmd.append("--ignore-unfixed")
        cmd.append(image_ref)

        result = self._ctx.run_command(cmd)
        for line in result.stdout.splitlines():
            self._ctx.logger.info(line)
        if result.ok:
            self._ctx.logger.info("Scan complete: no issues found at %s level", severity)
            return True
        self._ctx.logger.warning("Scan found vulnerabilities at %s level", severity)
        return False

    def generate_report(
        self, image_ref: str, output_file: str | os.PathLike[str], fmt: str = "json"
    ) -> Path:
        self.check()
        target = Path(output_file)
        target.parent.mkdir(parents=True, exist_ok=True)
        self._ctx.logger.info("Generating %s report: %s...", fmt, target)
        self._ctx.run_command(
            [
                "trivy", "image",
                "--severity", DEFAULT_SEVERITY,
                "--format", fmt,
                "--output", str(target),
                image_ref,
            ]
        )
        if not target.is_file() or target.stat().st_size == 0:
            raise TargetFailure(f"Failed to generate {fmt} report")
        return target

    def check_critical(self, image_ref: str) -> int:
        """Fail the target when any CRITICAL vulnerability is reported."""

        self.check()
        result = self._ctx.run_command(
            ["trivy", "image", "--severity", "CRITICAL", "--format", "json", "--quiet", image_ref]
        )
        if not result.ok and not result.stdout.strip():
            raise TargetFailure(f"Trivy scan failed for {image_ref}: {result.stderr.strip()}")
        try:
            report = json.loads(result.stdout or "{}")
        except json.JSONDecodeError as exc:
            raise TargetFailure(f"Unreadable trivy output for {image_ref}: {exc}") from exc

        count = count_vulnerabilities(report)
        if count:
            raise TargetFailure(f"Found {count} CRITICAL vulnerability(ies) in {image_ref}")
        self._ctx.logger.info("No CRITICAL vulnerabilities in %s", image_ref)
        return count


EXTENSION = TrivyExtension
