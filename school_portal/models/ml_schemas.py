from typing import Dict, Optional

from pydantic import BaseModel


class PredictionResponse(BaseModel):
    personnelId: str
    prediction: float
    trainedAt: Optional[str] = None
    features: Dict[str, float]
