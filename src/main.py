from __future__ import annotations

import argparse
import logging
from decimal import Decimal
from pathlib import Path
from typing import Sequence

from sqlalchemy.orm import Session, sessionmaker

from config import AppSettings, config
from db.db import init_db
from db.event_loader import SqlBulkEventLoader
from db.repositories import BatchRepository
from domain.batch import Batch, BatchId
from domain.reconciliation import reconcile
from domain.tax_calculator import compute_tax
from domain.tax_classifier import BatchClassifier
from domain.tax_config import TaxClass, load_tax_config
from domain.validation import BatchValidator
from utils.tax_summary import render_batch_classifications, render_reconciliation, render_tax_computation
from utils.validation_summary import compute_validation_summary, render_validation_summary


def _event_loader(settings: AppSettings, session_factory: sessionmaker[Session]) -> SqlBulkEventLoader:
    return SqlBulkEventLoader(
        session_factory,
        max_workers=settings.loader_max_workers,
        timeout=settings.loader_timeout_seconds,
    )


def _load_batches(session_factory: sessionmaker[Session], batch_ids: Sequence[str] | None) -> list[Batch]:
    with session_factory() as session:
        return BatchRepository(session).list([BatchId(b) for b in batch_ids] if batch_ids else None)


def run_validate(year: int, batch_ids: Sequence[str] | None) -> None:
    settings = config()
    session_factory = init_db(settings.database_url)
    batches = _load_batches(session_factory, batch_ids)

    results = BatchValidator(event_source=_event_loader(settings, session_factory)).validate(batches, year)
    render_validation_summary(compute_validation_summary(results, year))


def run_classify(batch_ids: Sequence[str] | None, tax_config_file: Path | None) -> None:
    settings = config()
    session_factory = init_db(settings.database_url)
    classifier = BatchClassifier(
        event_source=_event_loader(settings, session_factory),
        config=load_tax_config(tax_config_file or settings.tax_config_file),
    )
    render_batch_classifications(classifier.classify(_load_batches(session_factory, batch_ids)))


def run_tax(
    gallons: Decimal,
    prior_gallons: Decimal,
    tax_class: TaxClass | None,
    tax_config_file: Path | None,
    batch_id: str | None = None,
) -> None:
    settings = config()
    tax_config = load_tax_config(tax_config_file or settings.tax_config_file)

    if batch_id is not None:
        session_factory = init_db(settings.database_url)
        batches = _load_batches(session_factory, [batch_id])
        if not batches:
            raise SystemExit(f"Unknown batch: {batch_id}")
        classifier = BatchClassifier(event_source=_event_loader(settings, session_factory), config=tax_config)
        classification = classifier.classify(batches)[batches[0].id]
        if classification.tax_class is None:
            print(f"Batch {batch_id} is not taxable (rule {classification.rule}).")
            return
        print(f"Batch {batch_id} classified as {classification.tax_class.value} (rule {classification.rule}).")
        tax_class = classification.tax_class

    render_tax_computation(compute_tax(gallons, prior_gallons, tax_config, tax_class=tax_class or TaxClass.HARD_CIDER))


def main(argv: Sequence[str] | None = None) -> None:
    logging.basicConfig(level=config().log_level, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    parser = argparse.ArgumentParser(description="Validate batch volumes and compute excise tax.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    validate_parser = subparsers.add_parser("validate", help="Run batch validation checks.")
    validate_parser.add_argument("--year", type=int, required=True)
    validate_parser.add_argument("--batch", action="append", dest="batch_ids")

    classify_parser = subparsers.add_parser("classify", help="Resolve the tax class of stored batches.")
    classify_parser.add_argument("--batch", action="append", dest="batch_ids")
    classify_parser.add_argument("--tax-config", type=Path, default=None)

    tax_parser = subparsers.add_parser("tax", help="Compute tax owed for taxable wine gallons.")
    tax_parser.add_argument("--gallons", type=Decimal, required=True)
    tax_parser.add_argument("--prior-gallons", type=Decimal, default=Decimal(0))
    tax_source = tax_parser.add_mutually_exclusive_group()
    tax_source.add_argument("--tax-class", type=TaxClass, choices=list(TaxClass), default=None)
    tax_source.add_argument("--batch", dest="batch_id", help="Classify this stored batch to pick the tax class.")
    tax_parser.add_argument("--tax-config", type=Path, default=None)

    reconcile_parser = subparsers.add_parser("reconcile", help="Reconcile a reporting period (wine gallons).")
    for name in ("beginning", "produced", "received", "tax-paid-removals", "other-removals", "ending"):
        reconcile_parser.add_argument(f"--{name}", type=Decimal, default=Decimal(0))

    args = parser.parse_args(argv)
    if args.command == "validate":
        run_validate(args.year, args.batch_ids)
    elif args.command == "classify":
        run_classify(args.batch_ids, args.tax_config)
    elif args.command == "tax":
        run_tax(args.gallons, args.prior_gallons, args.tax_class, args.tax_config, args.batch_id)
    elif args.command == "reconcile":
        render_reconciliation(
            reconcile(
                beginning=args.beginning,
                produced=args.produced,
                received=args.received,
                tax_paid_removals=args.tax_paid_removals,
                other_removals=args.other_removals,
                ending=args.ending,
            )
        )


if __name__ == "__main__":
    main()
