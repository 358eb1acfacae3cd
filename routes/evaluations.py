import re
from datetime import date, timedelta
from typing import List, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from database import as_datetime, create_document, serialize
from errors import app_assert
from schemas import CriterionEvaluation, Evaluation
from security import full_name, get_database, get_user_from_token, oid, require_role

router = APIRouter(prefix="/evaluations", tags=["evaluations"])


class EvaluationRequest(BaseModel):
    scholar_id: str
    items: List[CriterionEvaluation] = Field(..., min_length=1)
    areas_of_strength: Optional[str] = None
    areas_of_improvement: Optional[str] = None
    recommended_for_next_semester: bool = False
    justification: Optional[str] = None


@router.post("")
def submit_evaluation(payload: EvaluationRequest, user=Depends(require_role("office")),
                      db=Depends(get_database)):
    scholar = db["scholar"].find_one({"_id": oid(payload.scholar_id)})
    app_assert(scholar, 404, "Scholar not found")
    scholar_user = None
    if ObjectId.is_valid(scholar["user_id"]):
        scholar_user = db["user"].find_one({"_id": ObjectId(scholar["user_id"])})
    app_assert(scholar_user, 404, "Scholar user not found")

    evaluation = Evaluation(
        scholar_id=payload.scholar_id,
        user_id=scholar["user_id"],
        scholar_name=full_name(scholar_user),
        scholar_type=scholar["scholar_type"],
        office_name=user.get("office_name") or scholar.get("scholar_office"),
        evaluator_name=full_name(user),
        evaluator_id=user["_id"],
        items=payload.items,
        areas_of_strength=payload.areas_of_strength,
        areas_of_improvement=payload.areas_of_improvement,
        recommended_for_next_semester=payload.recommended_for_next_semester,
        justification=payload.justification,
    )
    eval_id = create_document(db, "evaluation", evaluation)
    return serialize(db["evaluation"].find_one({"_id": ObjectId(eval_id)}))


@router.get("/mine")
def my_evaluations(user=Depends(require_role("office")), db=Depends(get_database)):
    cursor = db["evaluation"].find({"evaluator_id": user["_id"]}).sort("created_at", -1)
    return [serialize(e) for e in cursor]


@router.get("")
def list_evaluations(office: Optional[str] = None, scholar: Optional[str] = None,
                     start_date: Optional[date] = None, end_date: Optional[date] = None,
                     user=Depends(require_role("hr")), db=Depends(get_database)):
    filt = {}
    if office:
        filt["office_name"] = {"$regex": f"^{re.escape(office)}$", "$options": "i"}
    if scholar:
        filt["scholar_id"] = scholar
    created = {}
    if start_date:
        created["$gte"] = as_datetime(start_date)
    if end_date:
        # inclusive of the whole end day
        created["$lt"] = as_datetime(end_date + timedelta(days=1))
    if created:
        filt["created_at"] = created
    return [serialize(e) for e in db["evaluation"].find(filt).sort("created_at", -1)]


@router.get("/{eval_id}")
def get_evaluation(eval_id: str, user=Depends(get_user_from_token), db=Depends(get_database)):
    evaluation = db["evaluation"].find_one({"_id": oid(eval_id)})
    app_assert(evaluation, 404, "Evaluation not found")
    allowed = user["role"] == "hr" or (
        user["role"] == "office" and evaluation["evaluator_id"] == user["_id"]
    )
    app_assert(allowed, 403, "Forbidden")
    return serialize(evaluation)
