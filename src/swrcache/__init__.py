"""swrcache -- stale-while-revalidate response caching for HTTP clients.

This package keeps a small on-disk cache of successful GET responses and
delivers them to callers *before* the live network fetch finishes. When the
fresh response arrives it is compared with what the caller already has, and
a second delivery is made only if the content changed.

Typical workflow::

    from swrcache.cache import create_default_registry
    from swrcache.client import CachingClient
    from swrcache.models import CachePolicy

    registry = create_default_registry()
    with CachingClient(registry=registry) as client:
        client.get(
            "https://api.example.com/users",
            policy=CachePolicy.from_response_headers(),
            on_delivery=print,
        )

Modules:
    app: Typer application factory and CLI entry point.
    models: Pydantic models and value types shared across the package.
    config: XDG-aware configuration with atomic writes.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.3.0"
