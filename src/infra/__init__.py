"""Infrastructure layer package.

Implements Port interfaces with concrete adapters (PostgreSQL, Redis,
httpx providers, LiteLLM, Celery). Domain packages (objects, jobs,
dispatch) MUST NOT import from this package directly.
"""
