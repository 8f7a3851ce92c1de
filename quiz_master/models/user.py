# models/user.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional

class User(BaseModel):
    id: str  # Issued by the identity provider
    email: str
    username: Optional[str] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

class ProviderUser(BaseModel):
    """Identity as reported by the external provider."""

    id: str
    email: str
    username: Optional[str] = None

class ProfileUpdate(BaseModel):
    username: Optional[str] = None
