"""Domain models and engines for fleet cost invoicing.

The package holds in-memory (Pydantic) models for tools, projects, cost centers
and crews, the allocation engine that turns them into invoices, invoice
reporting, and the tool recommendation analysis built on top of project data.
"""

__all__ = [
    "allocation",
    "fleet",
    "recommendations",
    "reporting",
]
