"""
Classification Run Client.

- api/: Contract types and the async REST client
- auth/: Access token providers (static token, browser sign-in)
- core/: Configuration, logging, exceptions
- services/: Run lifecycle orchestration
- cli/: Typer commands (Typer + Rich)
"""

__version__ = "0.1.0"
