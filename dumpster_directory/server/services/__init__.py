"""
Request-facing services.

Each service works on a ``RepositoryBundle`` bound to the request's session
and owns the transaction boundaries of its operations.
"""
