"""
Advance Tax Module.

Responsibility:
    Thin glue for Indian corporate advance tax: one assessment per
    (company, financial year), its quarterly installment schedule, the
    payment ledger, section 234B/234C interest, what-if scenarios,
    mid-year revisions and the MAT credit register.  Delegates all arithmetic to ``advtax_engines`` and
    all statutory parameters to ``advtax_config``.

Architecture:
    advtax_modules -- module layer (this package).
    The module owns domain models, ORM models, configuration, workflows,
    collaborator protocols and the service.

Invariants:
    - All monetary amounts use ``Decimal`` -- NEVER ``float``.
    - Every mutating service method commits on success and rolls back on
      failure.
    - Finalized assessments and recorded payments are immutable; the ORM
      listeners in ``immutability.py`` enforce it at flush time.

Failure modes:
    - ``AdvanceTaxConfig.__post_init__`` raises ``ValueError`` for
      out-of-range settings.
    - Service operations raise the typed errors of
      ``advtax_kernel.exceptions``.

Audit relevance:
    - Each assessment stores the checksum of the policy used to compute it.
    - Payments carry the journal number assigned by the ledger.
"""

from advtax_modules.advance_tax.collaborators import (
    CompanyDirectory,
    JournalPoster,
    TaxCreditSource,
    YtdFinancials,
    YtdFinancialsSource,
)
from advtax_modules.advance_tax.config import AdvanceTaxConfig
from advtax_modules.advance_tax.models import (
    TRACKER_NOT_CREATED,
    Assessment,
    AssessmentCreate,
    AssessmentStatus,
    AssessmentUpdate,
    CreditPreview,
    MatCredit,
    MatCreditStatus,
    MatCreditSummary,
    MatCreditUtilization,
    Payment,
    PaymentTracker,
    Revision,
    RevisionStatus,
    Scenario,
    ScenarioRequest,
    ScheduleEntry,
    TaxComputation,
    YtdPreview,
)
from advtax_modules.advance_tax.service import AdvanceTaxService
from advtax_modules.advance_tax.workflows import ASSESSMENT_WORKFLOW

__all__ = [
    "ASSESSMENT_WORKFLOW",
    "AdvanceTaxConfig",
    "AdvanceTaxService",
    "Assessment",
    "AssessmentCreate",
    "AssessmentStatus",
    "AssessmentUpdate",
    "CompanyDirectory",
    "CreditPreview",
    "JournalPoster",
    "MatCredit",
    "MatCreditStatus",
    "MatCreditSummary",
    "MatCreditUtilization",
    "Payment",
    "PaymentTracker",
    "Revision",
    "RevisionStatus",
    "Scenario",
    "ScenarioRequest",
    "ScheduleEntry",
    "TRACKER_NOT_CREATED",
    "TaxComputation",
    "TaxCreditSource",
    "YtdFinancials",
    "YtdFinancialsSource",
    "YtdPreview",
]
