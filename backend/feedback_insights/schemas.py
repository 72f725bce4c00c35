# feedback_insights/schemas.py
from pydantic import BaseModel, Field
from typing import Any, Optional

class AnalyzeRequest(BaseModel):
    feedback: Optional[str] = None
    type: Optional[Any] = "general"       # anything unrecognised means "general"

class IngestRequest(BaseModel):
    source: Optional[str] = None

class ApiResponse(BaseModel):
    success: bool
    message: str
    type: Optional[str] = None                # set on single-item analyses
    data: Optional[Any] = None
    error: Optional[str] = Field(default=None)
