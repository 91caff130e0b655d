"""Custom Dishka scopes for idlink."""

from dishka import BaseScope, new_scope


class Scope(BaseScope):  # type: ignore[misc]  # BaseScope is designed to be subclassed
    """Dependency injection scopes.

    Hierarchy: APP -> UOW

    - APP: Application lifetime (engine, HTTP client, provider registry)
    - UOW: Unit of Work (one HTTP request, one database session)
    """

    APP = new_scope("APP")
    UOW = new_scope("UOW")
