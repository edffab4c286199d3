"""Library circulation — complete domain implementation.

Brings the patterns together for one domain:
- SQLAlchemy models for the catalog, membership, borrow records, fines
  and reservations
- Async repositories for the stores, the circulation boundary and reports
- CirculationEngine: transactional borrow/return/reserve and overdue fines
- FastAPI router for circulation, reports and CRUD
- Pure-function circulation rules
- Dataclass configuration
"""
