from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Generator

import pytest
from sqlalchemy.orm import Session, sessionmaker

import config
from db.repositories import BatchRepository, VolumeEventRepository
from domain.batch import BatchId, ProductType
from domain.events import Carbonation, CarbonationProcess
from main import main
from tests.helpers.builders import make_batch


@pytest.fixture()
def settings_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[str, None, None]:
    database_url = f"sqlite:///{tmp_path / 'cellar_ledger_test.db'}"
    monkeypatch.setenv("CELLAR_DATABASE_URL", database_url)
    config.config.cache_clear()
    yield database_url
    config.config.cache_clear()


def test_validate_command(
    settings_env: str, session_factory: sessionmaker[Session], capsys: pytest.CaptureFixture[str]
) -> None:
    with session_factory() as session:
        BatchRepository(session).create_many(
            [make_batch(batch_id="ok"), make_batch(batch_id="no-vessel", vessel_id=None)]
        )

    main(["validate", "--year", "2024"])

    output = capsys.readouterr().out
    assert "pass: 1  warning: 1  fail: 0" in output
    assert "Volume exists but no vessel assigned" in output


def test_validate_command_limits_to_requested_batches(
    settings_env: str, session_factory: sessionmaker[Session], capsys: pytest.CaptureFixture[str]
) -> None:
    with session_factory() as session:
        BatchRepository(session).create_many(
            [make_batch(batch_id="ok"), make_batch(batch_id="no-vessel", vessel_id=None)]
        )

    main(["validate", "--year", "2024", "--batch", "ok"])

    assert "pass: 1  warning: 0  fail: 0" in capsys.readouterr().out


def test_tax_command(settings_env: str, capsys: pytest.CaptureFixture[str]) -> None:
    main(["tax", "--gallons", "40000", "--prior-gallons", "25000"])

    output = capsys.readouterr().out
    assert "$280.00" in output
    assert "$8,760.00" in output


def test_tax_command_with_config_file(
    settings_env: str, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    config_file = tmp_path / "tax.json"
    config_file.write_text('{"tax_rates": {"wineUnder16": "2.00"}}', encoding="utf-8")

    main(["tax", "--gallons", "100", "--tax-class", "wineUnder16", "--tax-config", str(config_file)])

    output = capsys.readouterr().out
    assert "wineUnder16" in output
    assert "$200.00" in output


def test_reconcile_command(settings_env: str, capsys: pytest.CaptureFixture[str]) -> None:
    main(
        [
            "reconcile",
            "--beginning", "100",
            "--produced", "50",
            "--tax-paid-removals", "140",
            "--other-removals", "5",
            "--ending", "5",
        ]
    )

    assert "Balanced:            yes" in capsys.readouterr().out


def _seed_classification_batches(session_factory: sessionmaker[Session]) -> None:
    with session_factory() as session:
        BatchRepository(session).create_many(
            [
                make_batch(batch_id="still"),
                make_batch(batch_id="fizzy"),
                make_batch(batch_id="juice", product_type=ProductType.JUICE, actual_abv="0"),
            ]
        )
        VolumeEventRepository(session).create_many(
            [
                Carbonation(
                    batch_id=BatchId("fizzy"),
                    final_co2_volumes=Decimal("3.8"),
                    carbonation_process=CarbonationProcess.BOTTLE_CONDITIONING,
                )
            ]
        )


def test_classify_command(
    settings_env: str, session_factory: sessionmaker[Session], capsys: pytest.CaptureFixture[str]
) -> None:
    _seed_classification_batches(session_factory)

    main(["classify"])

    lines = capsys.readouterr().out.splitlines()
    rows = {line.split()[0]: line for line in lines[2:]}
    assert "hardCider" in rows["still"]
    assert "sparklingWine" in rows["fizzy"]
    assert "naturally_sparkling" in rows["fizzy"]
    assert "not taxable" in rows["juice"]


def test_tax_command_classifies_stored_batch(
    settings_env: str, session_factory: sessionmaker[Session], capsys: pytest.CaptureFixture[str]
) -> None:
    _seed_classification_batches(session_factory)

    main(["tax", "--gallons", "100", "--batch", "fizzy"])

    output = capsys.readouterr().out
    assert "classified as sparklingWine" in output
    assert "$340.00" in output


def test_tax_command_for_juice_batch_reports_not_taxable(
    settings_env: str, session_factory: sessionmaker[Session], capsys: pytest.CaptureFixture[str]
) -> None:
    _seed_classification_batches(session_factory)

    main(["tax", "--gallons", "100", "--batch", "juice"])

    output = capsys.readouterr().out
    assert "not taxable" in output
    assert "$" not in output


def test_tax_command_rejects_unknown_batch(settings_env: str, session_factory: sessionmaker[Session]) -> None:
    with pytest.raises(SystemExit):
        main(["tax", "--gallons", "100", "--batch", "missing"])


def test_lowercase_log_level_is_accepted(
    settings_env: str, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setenv("CELLAR_LOG_LEVEL", "debug")
    config.config.cache_clear()

    assert config.config().log_level == "DEBUG"
    main(["reconcile", "--beginning", "10", "--ending", "10"])
    assert "Balanced:            yes" in capsys.readouterr().out
