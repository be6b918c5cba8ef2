"""
Stock Modules.

Domain modules layered over the stock kernel.  Each module contains:
- Domain models (frozen DTOs and enums)
- ORM models (persistence)
- A service (mutations, one transaction per call)
- A selector (read-only projections)
- A configuration schema

Modules:
- Catalog: Articles, locations, responsible contacts
- Ledger: Receipt and write-off events, derived stock positions
- Fulfillment: Purchase orders and their state machine
"""
