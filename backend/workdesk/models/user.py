"""
Identity Model - the resolved caller handed to us by the auth provider.
"""

from typing import Optional
from pydantic import BaseModel


class TokenData(BaseModel):
    """Token payload data."""
    user_id: Optional[str] = None
