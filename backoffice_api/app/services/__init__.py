"""
Service layer.

Each service encapsulates the business logic of one domain.  Services
receive the request's database connection and the authenticated
caller, run their SQL (inside ``core.db.transaction`` when writing),
record an audit trail and either return a response dictionary or
raise ``core.errors.ServiceError``.
"""
