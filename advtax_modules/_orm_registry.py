"""
Module ORM Registry (``advtax_modules._orm_registry``).

Responsibility
--------------
Ensure every module-level SQLAlchemy ORM model is imported so that
``Base.metadata`` contains its table definition before tables are created.

Architecture position
---------------------
**Modules layer** -- utility.  Called lazily by
``advtax_kernel.db.engine.create_tables``; the kernel never imports module
code at import time.
"""


def import_all_orm_models() -> tuple[type, ...]:
    """Import every ``advtax_modules.*.orm`` module and return its models.

    Idempotent -- repeated calls are harmless.
    """
    from advtax_modules.advance_tax.orm import (
        AdvanceTaxAssessmentModel,
        AdvanceTaxMatCreditModel,
        AdvanceTaxMatCreditUtilizationModel,
        AdvanceTaxPaymentModel,
        AdvanceTaxRevisionModel,
        AdvanceTaxScenarioModel,
        AdvanceTaxScheduleModel,
    )

    return (
        AdvanceTaxAssessmentModel,
        AdvanceTaxScheduleModel,
        AdvanceTaxPaymentModel,
        AdvanceTaxScenarioModel,
        AdvanceTaxRevisionModel,
        AdvanceTaxMatCreditModel,
        AdvanceTaxMatCreditUtilizationModel,
    )
