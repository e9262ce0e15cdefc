"""
Typed Exception Hierarchy for the Advance Tax Engine.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (API handlers, batch jobs, the presentation layer) must be able to
render a precise message and decide whether to retry without parsing
message strings.  Every error therefore:
  1. Has its own exception class (catch by type, not message)
  2. Carries a ``code`` class attribute (machine-readable, API-safe)
  3. Stores structured data as attributes (field, reason, ids, states)

Example:
    try:
        service.record_payment(assessment_id, date(2024, 6, 10), amount, actor)
    except AssessmentFinalizedError as e:
        api_response(code=e.code, assessment=e.assessment_id, op=e.operation)
    except InvalidAmountError as e:
        api_response(code=e.code, field=e.field, reason=e.reason)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    AdvanceTaxError (base)
    |
    +-- ValidationError
    |   +-- InvalidAmountError
    |   +-- UnknownTaxRegimeError
    |   +-- InvalidFinancialYearError
    |   +-- ScheduleLinkError
    |
    +-- NotFoundError
    |   +-- AssessmentNotFoundError
    |   +-- PaymentNotFoundError
    |   +-- ScenarioNotFoundError
    |   +-- MatCreditNotFoundError
    |
    +-- StateConflictError
    |   +-- AssessmentFinalizedError
    |   +-- AssessmentNotActiveError
    |   +-- InvalidTransitionError
    |   +-- DuplicateAssessmentError
    |   +-- ConcurrencyError
    |       +-- ConcurrentRecomputeError
    |       +-- OptimisticLockError
    |
    +-- ExternalDependencyError
    |   +-- JournalPostingError
    |   +-- CollaboratorUnavailableError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | VALIDATION_ERROR            | Generic field-level rule failed
                | INVALID_AMOUNT              | Amount <= 0 or negative input line
                | UNKNOWN_TAX_REGIME          | Regime not in the regime table
                | INVALID_FINANCIAL_YEAR      | Label not "YYYY-YY" / "YYYY-YYYY"
                | INVALID_SCHEDULE_LINK       | schedule_id not owned by assessment
----------------|-----------------------------|-----------------------------------------
Not found       | ASSESSMENT_NOT_FOUND        | Assessment ID doesn't exist
                | PAYMENT_NOT_FOUND           | Payment ID doesn't exist
                | SCENARIO_NOT_FOUND          | Scenario ID doesn't exist
----------------|-----------------------------|-----------------------------------------
State conflict  | ASSESSMENT_FINALIZED        | Mutation of a finalized assessment
                | ASSESSMENT_NOT_ACTIVE       | Payment against a draft assessment
                | INVALID_TRANSITION          | Lifecycle action not allowed
                | ASSESSMENT_EXISTS           | Second assessment for company + FY
                | RECOMPUTE_IN_PROGRESS       | Per-assessment lock not acquired
                | OPTIMISTIC_LOCK_CONFLICT    | Row version changed underneath
----------------|-----------------------------|-----------------------------------------
External        | JOURNAL_POSTING_FAILED      | Ledger collaborator rejected posting
                | COLLABORATOR_UNAVAILABLE    | Required collaborator not wired
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Editing payment facts / finalized data

===============================================================================
HANDLING PATTERNS
===============================================================================

1. VALIDATION errors are raised before any mutation; nothing to undo.

2. STATE CONFLICT errors leave stored data unchanged.  The engine never
   retries them itself; ConcurrencyError subclasses are safe for the
   caller to retry.

3. JournalPostingError never rolls back the payment it belongs to.  The
   payment stays recorded without a journal number and is listed by
   ``AdvanceTaxService.list_unposted_payments()``.
"""


class AdvanceTaxError(Exception):
    """
    Base exception for all advance tax errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "ADVANCE_TAX_ERROR"


# Validation exceptions


class ValidationError(AdvanceTaxError):
    """An input failed a field-level or cross-field rule."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class InvalidAmountError(ValidationError):
    """A monetary input is out of range."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, amount, reason: str = "must be greater than zero"):
        self.amount = amount
        super().__init__(field, f"{reason} (got {amount})")


class UnknownTaxRegimeError(ValidationError):
    """Tax regime is not present in the active regime table."""

    code: str = "UNKNOWN_TAX_REGIME"

    def __init__(self, regime: str, known: tuple[str, ...] = ()):
        self.regime = regime
        self.known = known
        super().__init__(
            "tax_regime",
            f"unknown regime '{regime}'"
            + (f"; expected one of {', '.join(known)}" if known else ""),
        )


class InvalidFinancialYearError(ValidationError):
    """Financial year label cannot be parsed."""

    code: str = "INVALID_FINANCIAL_YEAR"

    def __init__(self, label: str):
        self.label = label
        super().__init__(
            "financial_year",
            f"'{label}' is not of the form YYYY-YY or YYYY-YYYY",
        )


class ScheduleLinkError(ValidationError):
    """Payment references a schedule entry of another assessment."""

    code: str = "INVALID_SCHEDULE_LINK"

    def __init__(self, schedule_id: str, assessment_id: str):
        self.schedule_id = schedule_id
        self.assessment_id = assessment_id
        super().__init__(
            "schedule_id",
            f"schedule entry {schedule_id} does not belong to assessment {assessment_id}",
        )


# Not-found exceptions


class NotFoundError(AdvanceTaxError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"


class AssessmentNotFoundError(NotFoundError):
    """Assessment with given ID was not found."""

    code: str = "ASSESSMENT_NOT_FOUND"

    def __init__(self, assessment_id: str):
        self.assessment_id = assessment_id
        super().__init__(f"Assessment not found: {assessment_id}")


class PaymentNotFoundError(NotFoundError):
    """Payment with given ID was not found."""

    code: str = "PAYMENT_NOT_FOUND"

    def __init__(self, payment_id: str):
        self.payment_id = payment_id
        super().__init__(f"Payment not found: {payment_id}")


class ScenarioNotFoundError(NotFoundError):
    """Scenario with given ID was not found."""

    code: str = "SCENARIO_NOT_FOUND"

    def __init__(self, scenario_id: str):
        self.scenario_id = scenario_id
        super().__init__(f"Scenario not found: {scenario_id}")


class MatCreditNotFoundError(NotFoundError):
    """MAT credit register entry with given ID was not found."""

    code: str = "MAT_CREDIT_NOT_FOUND"

    def __init__(self, mat_credit_id: str):
        self.mat_credit_id = mat_credit_id
        super().__init__(f"MAT credit not found: {mat_credit_id}")


# State-conflict exceptions


class StateConflictError(AdvanceTaxError):
    """Base exception for operations not allowed in the current state."""

    code: str = "STATE_CONFLICT"


class AssessmentFinalizedError(StateConflictError):
    """Mutation attempted on a finalized assessment."""

    code: str = "ASSESSMENT_FINALIZED"

    def __init__(self, assessment_id: str, operation: str):
        self.assessment_id = assessment_id
        self.operation = operation
        super().__init__(
            f"Assessment {assessment_id} is finalized; {operation} is not allowed"
        )


class AssessmentNotActiveError(StateConflictError):
    """Operation requires an active assessment."""

    code: str = "ASSESSMENT_NOT_ACTIVE"

    def __init__(self, assessment_id: str, status: str, operation: str):
        self.assessment_id = assessment_id
        self.status = status
        self.operation = operation
        super().__init__(
            f"Assessment {assessment_id} is {status}; {operation} requires an active assessment"
        )


class InvalidTransitionError(StateConflictError):
    """Lifecycle action is not defined from the current state."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, assessment_id: str, from_state: str, action: str):
        self.assessment_id = assessment_id
        self.from_state = from_state
        self.action = action
        super().__init__(
            f"Cannot {action} assessment {assessment_id} from state '{from_state}'"
        )


class DuplicateAssessmentError(StateConflictError):
    """An assessment already exists for the company and financial year."""

    code: str = "ASSESSMENT_EXISTS"

    def __init__(self, company_id: str, financial_year: str, existing_id: str):
        self.company_id = company_id
        self.financial_year = financial_year
        self.existing_id = existing_id
        super().__init__(
            f"Assessment {existing_id} already exists for company {company_id} "
            f"FY {financial_year}"
        )


class ConcurrencyError(StateConflictError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrentRecomputeError(ConcurrencyError):
    """Another mutation of the same assessment is in flight."""

    code: str = "RECOMPUTE_IN_PROGRESS"

    def __init__(self, assessment_id: str, timeout_seconds: float):
        self.assessment_id = assessment_id
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Assessment {assessment_id} is being recomputed by another request "
            f"(lock not acquired within {timeout_seconds}s)"
        )


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# External-dependency exceptions


class ExternalDependencyError(AdvanceTaxError):
    """Base exception for collaborator failures."""

    code: str = "EXTERNAL_DEPENDENCY_ERROR"


class JournalPostingError(ExternalDependencyError):
    """The ledger collaborator did not return a journal number."""

    code: str = "JOURNAL_POSTING_FAILED"

    def __init__(self, payment_id: str, attempts: int, reason: str):
        self.payment_id = payment_id
        self.attempts = attempts
        self.reason = reason
        super().__init__(
            f"Journal posting for payment {payment_id} failed after "
            f"{attempts} attempt(s): {reason}"
        )


class CollaboratorUnavailableError(ExternalDependencyError):
    """A collaborator needed by the operation was not supplied."""

    code: str = "COLLABORATOR_UNAVAILABLE"

    def __init__(self, collaborator: str, operation: str):
        self.collaborator = collaborator
        self.operation = operation
        super().__init__(f"{operation} requires a {collaborator}")


# Immutability exceptions


class ImmutabilityError(AdvanceTaxError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Payments are append-only; finalized assessments are read-only.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
