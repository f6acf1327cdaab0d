from pathlib import Path
from typing import Generator

import pytest
from sqlalchemy.orm import Session, sessionmaker

from db.db import init_db
from domain.tax_config import DEFAULT_TAX_CONFIG, TaxClassificationConfig


@pytest.fixture(scope="function")
def session_factory(tmp_path: Path) -> sessionmaker[Session]:
    # File-backed so that the loader's worker threads share one database.
    return init_db(f"sqlite:///{tmp_path / 'cellar_ledger_test.db'}", reset=True)


@pytest.fixture(scope="function")
def test_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    with session_factory() as session:
        yield session


@pytest.fixture(scope="function")
def tax_config() -> TaxClassificationConfig:
    return DEFAULT_TAX_CONFIG
