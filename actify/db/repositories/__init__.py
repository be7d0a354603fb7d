"""
Per-domain repository modules for shared database access.

Facility-scoped feature services query the ORM directly; identity, facility
membership and audit persistence live here and are surfaced through
`actify.db.crud`.
"""
