"""Repository layer for the docanchor backend.

Provides data access abstractions for domain entities.
"""

from docanchor.repositories.upload import UploadRepository

__all__ = [
    "UploadRepository",
]
