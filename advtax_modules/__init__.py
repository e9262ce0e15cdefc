"""
Advance Tax Modules.

Thin orchestration layers over the kernel and the engines.  Each module
contains:
- Domain models (the nouns)
- ORM persistence companions
- Workflows (state machines)
- Configuration schemas (settings)
- A service that owns the transaction boundary

Modules:
- Advance tax: assessments, quarterly schedules, payments, interest
  (234B/234C), scenarios and revisions

Actual arithmetic lives in ``advtax_engines``.
"""

from advtax_modules import advance_tax

__all__ = ["advance_tax"]
