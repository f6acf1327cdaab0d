from __future__ import annotations

from domain.batch import BatchId
from domain.reconciliation import Reconciliation
from domain.tax_calculator import TaxComputation
from domain.tax_classifier import BatchClassification

from .formatting import format_currency, format_decimal, format_gallons


def render_tax_computation(result: TaxComputation) -> None:
    rows = [
        ("Tax class", result.tax_class.value),
        ("Taxable gallons", format_gallons(result.taxable_units)),
        ("Gross tax", format_currency(result.gross_tax)),
        ("Credit-eligible gallons", format_gallons(result.credit_eligible_units)),
        ("Small producer credit", format_currency(result.credit)),
        ("Net tax owed", format_currency(result.net_tax)),
        ("Effective rate", format_decimal(result.effective_rate)),
    ]
    label_width = max(len(label) for label, _ in rows)
    value_width = max(len(value) for _, value in rows)
    print("Tax computation:")
    print("\n".join(f"  {label:<{label_width}} {value:>{value_width}}" for label, value in rows))


def render_reconciliation(result: Reconciliation) -> None:
    print("Inventory reconciliation (wine gallons):")
    print(f"  Total available:     {format_gallons(result.total_available)}")
    print(f"  Total accounted for: {format_gallons(result.total_accounted_for)}")
    print(f"  Variance:            {format_gallons(result.variance)}")
    print(f"  Balanced:            {'yes' if result.balanced else 'NO'}")


def render_batch_classifications(results: dict[BatchId, BatchClassification]) -> None:
    if not results:
        print("No batches to classify.")
        return

    rows = []
    for batch_id in sorted(results):
        result = results[batch_id]
        data = result.classification_input
        rows.append(
            (
                batch_id,
                data.product_type.value if data.product_type else "-",
                format_decimal(data.abv) if data.abv is not None else "-",
                format_decimal(data.co2_volumes) if data.co2_volumes is not None else "-",
                result.tax_class.value if result.tax_class else "not taxable",
                result.rule,
            )
        )
    headers = ("Batch", "Product", "ABV", "CO2 vol", "Tax class", "Rule")
    widths = [max(len(header), *(len(row[i]) for row in rows)) for i, header in enumerate(headers)]

    header_line = " ".join(f"{header:<{width}}" for header, width in zip(headers, widths)).rstrip()
    lines = [header_line, "-" * len(header_line)]
    lines.extend(" ".join(f"{value:<{width}}" for value, width in zip(row, widths)).rstrip() for row in rows)
    print("\n".join(lines))
