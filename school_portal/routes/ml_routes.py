from fastapi import APIRouter, Depends, Request
from pymongo.database import Database

from school_portal.core.database import get_db
from school_portal.core.security import require_permission
from school_portal.models.ml_schemas import PredictionResponse
from school_portal.services.audit_log import audit
from school_portal.services.ml_client import predict_personnel_performance

router = APIRouter(prefix="/ml", tags=["ML"])


@router.post("/predict/{personnel_id}", response_model=PredictionResponse)
def predict(
    personnel_id: str,
    request: Request,
    db: Database = Depends(get_db),
    current_user: dict = Depends(require_permission("ml.predict")),
):
    """Ask the model-serving endpoint for a performance score for one person."""
    result = predict_personnel_performance(db, personnel_id)
    audit(db, request, current_user, "ml.predict", "personnel", personnel_id,
          details={"prediction": result["prediction"]})
    return result
