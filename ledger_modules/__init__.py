"""
Ledger Modules.

Business modules layered over the ledger kernel.  Each module contains:
- Domain models (enums and frozen DTOs)
- ORM tables
- A configuration schema
- A service facade that owns its transaction boundary

Modules:
- Budget: budgets per account and period, revisions, variance analysis
- Reporting: trial balance, general ledger, financial statements, ratios
"""
