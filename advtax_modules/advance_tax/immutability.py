"""
ORM-Level Immutability Enforcement for advance tax records.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                 | When Immutable               | What may still change
-----------------------|------------------------------|------------------------------
AdvanceTaxPayment      | ALWAYS (from creation)       | journal_number NULL -> value
                       |                              | (once), posting attempt
                       |                              | columns, audit columns
AdvanceTaxPayment      | Delete: ALWAYS blocked       | --
AdvanceTaxAssessment   | After status = finalized     | audit columns only
AdvanceTaxMatCredit-   | ALWAYS: update and delete    | --
  Utilization          | blocked                      |

===============================================================================
HOW IT WORKS
===============================================================================

    session.flush()
         |
         v
    [before_update] --> _check_*_immutability() --> ImmutabilityViolationError
         |                  _block_utilization_change()
         |
    [before_delete] --> _check_payment_delete() ---> ImmutabilityViolationError
         |                  _block_utilization_change()
         |
         v
    SQL sent to database (only if checks pass)

The finalize transition itself (active -> finalized, with the interest
snapshot) is allowed: the check looks at the status the row HAD before the
flush, not the status being written.

Called from ``AdvanceTaxService.__init__``; registration is idempotent:

    from advtax_modules.advance_tax.immutability import register_immutability_listeners
    register_immutability_listeners()
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from advtax_kernel.db.base import AUDIT_COLUMNS
from advtax_kernel.exceptions import ImmutabilityViolationError
from advtax_kernel.logging_config import get_logger

logger = get_logger("modules.advance_tax.immutability")

_ASSESSMENT_MUTABLE_AFTER_FINALIZE = AUDIT_COLUMNS | {"version"}


def _block(entity_type: str, entity_id, operation: str, field: str | None, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            "field": field,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _check_payment_immutability(mapper, connection, target):
    """
    Payments are append-only.

    Fact columns never change.  ``journal_number`` may be set once, from
    NULL to a value, when the ledger posts the payment.
    """
    for field in target.FACT_FIELDS:
        if get_history(target, field).has_changes():
            _block(
                "AdvanceTaxPayment", target.id, "UPDATE", field,
                f"Cannot modify field '{field}' on a recorded payment",
            )

    journal = get_history(target, "journal_number")
    if journal.has_changes():
        previous = journal.deleted[0] if journal.deleted else None
        if previous is not None or target.journal_number is None:
            _block(
                "AdvanceTaxPayment", target.id, "UPDATE", "journal_number",
                "Journal number can only be set once",
            )


def _check_payment_delete(mapper, connection, target):
    _block(
        "AdvanceTaxPayment", target.id, "DELETE", None,
        "Payments cannot be deleted; record a correcting entry instead",
    )


def _block_utilization_change(mapper, connection, target):
    _block(
        "AdvanceTaxMatCreditUtilization", target.id, "UPDATE/DELETE", None,
        "MAT credit utilizations are append-only",
    )


def _was_finalized(target) -> bool:
    status = get_history(target, "status")
    if status.deleted:
        return status.deleted[0] == "finalized"
    if not status.added:
        return target.status == "finalized"
    return False


def _check_assessment_immutability(mapper, connection, target):
    """Block any non-audit change to an assessment that was already finalized."""
    if not _was_finalized(target):
        return
    for attr in inspect(target).attrs:
        if attr.key in _ASSESSMENT_MUTABLE_AFTER_FINALIZE:
            continue
        if attr.history.has_changes():
            _block(
                "AdvanceTaxAssessment", target.id, "UPDATE", attr.key,
                f"Cannot modify field '{attr.key}' on a finalized assessment",
            )


_LISTENERS = (
    ("AdvanceTaxPaymentModel", "before_update", _check_payment_immutability),
    ("AdvanceTaxPaymentModel", "before_delete", _check_payment_delete),
    ("AdvanceTaxAssessmentModel", "before_update", _check_assessment_immutability),
    ("AdvanceTaxMatCreditUtilizationModel", "before_update", _block_utilization_change),
    ("AdvanceTaxMatCreditUtilizationModel", "before_delete", _block_utilization_change),
)


def _models():
    from advtax_modules.advance_tax import orm
    return orm


def register_immutability_listeners() -> None:
    """Register the listeners; calling again is a no-op."""
    orm = _models()
    registered = 0
    for model_name, event_name, listener in _LISTENERS:
        model = getattr(orm, model_name)
        if not event.contains(model, event_name, listener):
            event.listen(model, event_name, listener)
            registered += 1
    if registered:
        logger.info("advance_tax_immutability_listeners_registered", extra={
            "listener_count": registered,
        })

