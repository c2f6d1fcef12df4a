"""Base exception for the mulch core.

Concrete errors live beside the code that raises them; they all derive
from ``MulchError`` so the MCP surface can turn them into rejected
results without catching unrelated failures.
"""

from __future__ import annotations


class MulchError(Exception):
    """Root of every caller-facing mulch error."""

    error_code = "mulch_error"


class DomainNotFoundError(MulchError):
    """Raised when a domain is not listed in the project config."""

    error_code = "domain_not_found"

    def __init__(self, domain: str, available: list[str] | tuple[str, ...]) -> None:
        self.domain = domain
        self.available = list(available)
        names = ", ".join(self.available) or "(none)"
        super().__init__(
            f'Domain "{domain}" not found in config. Available domains: {names}'
        )


class DomainExistsError(MulchError):
    """Raised when adding a domain that is already configured."""

    error_code = "domain_exists"

    def __init__(self, domain: str) -> None:
        self.domain = domain
        super().__init__(f'Domain "{domain}" already exists.')
