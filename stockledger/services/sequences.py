"""
Multi-step ledger sequences — one transaction, tracked steps.

Purchase deletion and verification approval write to several tables.
They run inside ledger_sequence(), which gives them a single atomic
block and a record of the steps already applied. The record is what
goes into PartialApplicationError when the database fails midway.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from django.db import DatabaseError, OperationalError, transaction

from stockledger.exceptions import LedgerError, PartialApplicationError, RetryableError

logger = logging.getLogger('stockledger')


@dataclass
class Sequence:
    """Steps applied so far, plus identifiers for reconciliation."""

    operation: str
    context: dict[str, Any] = field(default_factory=dict)
    steps: list[str] = field(default_factory=list)

    def step(self, name: str) -> None:
        self.steps.append(name)


@contextmanager
def ledger_sequence(operation: str, error_class: type[PartialApplicationError] = PartialApplicationError,
                    **context):
    """
    Run a multi-step sequence atomically.

    - LedgerError (validation, invariant, transition) propagates unchanged:
      the transaction is rolled back and nothing was applied. This includes
      the RetryableError that apply_movement() raises for a lock timeout,
      so a timeout on a later movement of the sequence still surfaces as
      RetryableError, with every earlier step rolled back.
    - OperationalError raised directly in the block: RetryableError before
      any step, error_class after one.
    - Any other DatabaseError → error_class with the applied steps and
      rolled_back=True.

    Usage:
        with ledger_sequence('purchase.delete', PurchaseDeletionError,
                             purchase_id=pk) as seq:
            ...
            seq.step('compensating_exit')
    """
    seq = Sequence(operation=operation, context=dict(context))
    try:
        with transaction.atomic():
            yield seq
    except LedgerError:
        raise
    except OperationalError as exc:
        if not seq.steps:
            raise RetryableError(operation=operation, error=str(exc), **seq.context) from exc
        _report(seq, exc)
        raise error_class(
            operation=operation,
            steps_applied=list(seq.steps),
            rolled_back=True,
            error=str(exc),
            **seq.context,
        ) from exc
    except DatabaseError as exc:
        _report(seq, exc)
        raise error_class(
            operation=operation,
            steps_applied=list(seq.steps),
            rolled_back=True,
            error=str(exc),
            **seq.context,
        ) from exc


def _report(seq: Sequence, exc: Exception) -> None:
    logger.error(
        f"{seq.operation}.failed",
        extra={
            "operation": seq.operation,
            "steps_applied": list(seq.steps),
            "error": str(exc),
            **{k: str(v) for k, v in seq.context.items()},
        },
    )
