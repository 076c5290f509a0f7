"""
Pydantic schemas for company responses.
"""
from pydantic import BaseModel


class CompanyPublic(BaseModel):
    """Public company information."""
    id: str
    name: str
    
    model_config = {"from_attributes": True}
