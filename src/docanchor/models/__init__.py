"""SQLModel database entities and their API schemas.

All table models are imported here to ensure they're registered with SQLModel
metadata for Alembic autogenerate support.
"""

from docanchor.models.upload import UploadCreate, UploadRead, UploadRecord

__all__ = [
    "UploadRecord",
    "UploadCreate",
    "UploadRead",
]
