"""
Evaluation form response store.

- Mongo collection: evaluation_form_responses
- One document per submitted evaluation; documents are never updated.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from bson import ObjectId
from pymongo.database import Database


class EvaluationResponseRepository:
    def __init__(self, database: Database):
        self._col = database["evaluation_form_responses"]

    def create(self, form_id: ObjectId, response: dict) -> dict:
        answers = response.get("answers", [])
        doc = {
            "form": form_id,
            "respondentName": (response.get("respondentName") or "").strip(),
            "respondentEmail": (response.get("respondentEmail") or "").strip().lower(),
            "respondentDepartment": (response.get("respondentDepartment") or "").strip(),
            "semester": (response.get("semester") or "").strip(),
            "evaluator": (response.get("evaluator") or "").strip(),
            "answers": answers,
            "totalScore": sum(float(a["score"]) for a in answers),
            "createdAt": datetime.now(timezone.utc),
        }
        result = self._col.insert_one(doc)
        doc["_id"] = result.inserted_id
        return doc

    def get(self, response_id: ObjectId) -> Optional[dict]:
        return self._col.find_one({"_id": response_id})

    def find_by_form(
        self,
        form_id: ObjectId,
        semester: Optional[str] = None,
        department: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> List[dict]:
        query: dict = {"form": form_id}
        if semester:
            query["semester"] = semester.strip()
        if department:
            query["respondentDepartment"] = department.strip()
        if start_date or end_date:
            created = {}
            if start_date:
                created["$gte"] = start_date
            if end_date:
                created["$lte"] = end_date
            query["createdAt"] = created
        # insertion order keeps "first appearance" stable for report building
        return list(self._col.find(query).sort("createdAt", 1))

    def find_by_respondent(self, email: str) -> List[dict]:
        return list(
            self._col.find({"respondentEmail": (email or "").strip().lower()}).sort("createdAt", -1)
        )

    def count_by_form(self, form_id: ObjectId) -> int:
        return self._col.count_documents({"form": form_id})

    def distinct_semesters(self, form_id: ObjectId) -> List[str]:
        return sorted(s for s in self._col.distinct("semester", {"form": form_id}) if s)

    def delete_many_by_form(self, form_id: ObjectId) -> int:
        return self._col.delete_many({"form": form_id}).deleted_count
