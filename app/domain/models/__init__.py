"""
Domain Models Package
Export all domain entities
"""

from .entities import (
    # Enums
    MigrationOutcome,
    Strategy,

    # Entities
    AccountMigration,
    EvaluationResult,
    MigrationReport,
    RateSample,
    RoutedOperation,

    # Rules
    decide_strategy,
)

__all__ = [
    # Enums
    "MigrationOutcome",
    "Strategy",

    # Entities
    "AccountMigration",
    "EvaluationResult",
    "MigrationReport",
    "RateSample",
    "RoutedOperation",

    # Rules
    "decide_strategy",
]
