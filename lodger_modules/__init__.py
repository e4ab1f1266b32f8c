"""
Lodger Modules.

Orchestration layers over the Lodger Kernel.  Each module contains:
- Domain models (the nouns)
- Pure calculations (date and money arithmetic)
- Workflows (state machines)
- ORM persistence and a service facade

Modules:
- Tenancy: rent schedules, the payment ledger, notices and settlement
"""
