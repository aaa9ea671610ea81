"""Request and response models for the IVChain HTTP API."""

from pydantic import BaseModel, Field, StrictInt
from typing import List


class SubmitRequest(BaseModel):
    identity: str = Field(min_length=1)
    public_key: str
    iv: List[StrictInt] = Field(min_length=7, max_length=7)
    timestamp: StrictInt = Field(ge=0)
    signature: str


class StatsResponse(BaseModel):
    total_records: int
    height: int
    tip_hash: str
    oracle_signer: str
