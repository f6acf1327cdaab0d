from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field

from domain.batch import BatchId
from domain.validation import BatchValidation, ValidationStatus


@dataclass
class FlaggedCheck:
    batch_id: BatchId
    check_id: str
    status: ValidationStatus
    message: str
    details: str | None


@dataclass
class ValidationSummary:
    reference_year: int
    status_counts: Counter[ValidationStatus] = field(default_factory=Counter)
    flagged: list[FlaggedCheck] = field(default_factory=list)


def compute_validation_summary(results: dict[BatchId, BatchValidation], reference_year: int) -> ValidationSummary:
    summary = ValidationSummary(reference_year=reference_year)
    for batch_id in sorted(results):
        validation = results[batch_id]
        summary.status_counts[validation.status] += 1
        for check in validation.checks:
            if check.status == ValidationStatus.PASS:
                continue
            summary.flagged.append(
                FlaggedCheck(
                    batch_id=batch_id,
                    check_id=check.id,
                    status=check.status,
                    message=check.message,
                    details=check.details,
                )
            )
    return summary


def render_validation_summary(summary: ValidationSummary) -> None:
    counts = summary.status_counts
    print(f"Batch validation for {summary.reference_year}:")
    print(
        f"  pass: {counts[ValidationStatus.PASS]}  "
        f"warning: {counts[ValidationStatus.WARNING]}  "
        f"fail: {counts[ValidationStatus.FAIL]}"
    )
    if not summary.flagged:
        print("  (no issues)")
        return

    rows = [
        (row.batch_id, row.check_id, row.status.value, row.message + (f" ({row.details})" if row.details else ""))
        for row in summary.flagged
    ]
    batch_width = max(len("Batch"), max((len(batch) for batch, _, _, _ in rows), default=0))
    check_width = max(len("Check"), max((len(check) for _, check, _, _ in rows), default=0))
    status_width = max(len("Status"), max((len(status) for _, _, status, _ in rows), default=0))

    header = f"{'Batch':<{batch_width}} {'Check':<{check_width}} {'Status':<{status_width}} Message"
    lines = [header, "-" * len(header)]
    for batch_id, check_id, status, message in rows:
        lines.append(f"{batch_id:<{batch_width}} {check_id:<{check_width}} {status:<{status_width}} {message}")
    print("\n".join(lines))
