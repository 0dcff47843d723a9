"""
Models for generated unit files.
"""
from pydantic import BaseModel


class QuadletFile(BaseModel):
    """
    One generated unit, e.g. `web.container`, with its text.
    """
    filename: str
    content: str
