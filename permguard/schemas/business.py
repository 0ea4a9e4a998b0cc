from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class VendorIn(BaseModel):
    name: str = Field(min_length=1, max_length=200)


class VendorOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    status: str
    org_id: str
    owner_id: str
    created_at: datetime


class LeadIn(BaseModel):
    name: str = Field(min_length=1, max_length=200)


class LeadOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    stage: str
    org_id: str
    owner_id: str
    created_at: datetime
