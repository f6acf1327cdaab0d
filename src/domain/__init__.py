"""Domain models and rules for the cellar volume ledger.

Batches and their volume events are plain pydantic models with no knowledge of
the database; :mod:`db` maps them to and from SQLAlchemy rows. Validation, tax
classification and tax computation all operate on these models only.
"""

__all__ = [
    "batch",
    "events",
    "event_index",
    "units",
    "validation",
    "tax_config",
    "tax_classifier",
    "tax_calculator",
    "reconciliation",
]
