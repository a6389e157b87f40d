"""
Request and response models for the HTTP UI boundary.
"""

from pydantic import BaseModel
from typing import Dict, List


class HealthResponse(BaseModel):
    status: str
    version: str
    storage_health: bool
    num_examples: int


class StateResponse(BaseModel):
    counts: Dict[int, int]
    previews: Dict[int, List[str]]
    class_names: List[str]
    status: str


class TrainResponse(BaseModel):
    label: int
    added: int
    skipped: int
    saved: bool
    status: str
    errors: List[str]
    counts: Dict[int, int]


class PredictionResponse(BaseModel):
    label: int
    class_name: str
    confidence: float
    percentage: str
    confidences: Dict[int, float]


class ClearResponse(BaseModel):
    cleared: bool
    status: str
    counts: Dict[int, int]
