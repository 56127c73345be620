# This project was developed with assistance from AI tools.
"""Shared schema components."""

from pydantic import BaseModel


class ListMeta(BaseModel):
    """Metadata for unpaginated list responses."""

    total: int
