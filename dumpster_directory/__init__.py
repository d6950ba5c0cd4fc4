"""Dumpster Directory.

This package implements a local-services business directory and lead
marketplace for the dumpster rental vertical.

High-level architecture
-----------------------

- ``dumpster_directory.core``:

  - SQLModel entities and async repositories for businesses, quotes, leads,
    claim campaigns, subscriptions and users.
  - The in-memory business cache used by the directory listing endpoints.
  - Stripe billing integration (checkout sessions and webhook processing).
  - ZIP code lookup and CSV/JSON transfer utilities for bulk data maintenance.

- ``dumpster_directory.server``:

  - The FastAPI application, its routers, configuration and request services.

- ``dumpster_directory.cli``:

  - Batch commands (import, export, duplicate consolidation, admin setup).

Typical workflow
----------------

1. Businesses are imported in bulk or created through the API.
2. Customers submit quote requests which are assigned to matching businesses.
3. Business owners claim their listing, buy lead credits or a subscription,
   and spend one credit to reveal each lead's contact details.
"""

__version__ = "0.1.0"
