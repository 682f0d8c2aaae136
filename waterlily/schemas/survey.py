from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

QuestionKind = Literal["text", "multipleChoice"]


# A question as it travels over the wire and sits in the survey document.
# JSON names: {"id", "text": <kind>, "question": <prompt>, "options"}
class Question(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1)
    kind: QuestionKind = Field(..., alias="text")
    prompt: str = Field(..., alias="question")
    options: Optional[List[str]] = None


def check_unique_question_ids(questions: Optional[List[Question]]) -> None:
    seen = set()
    for question in questions or []:
        if question.id in seen:
            raise ValueError(f"duplicate question id {question.id!r}")
        seen.add(question.id)


# Body of POST /api/surveys
class SurveyCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., min_length=1)
    description: Optional[str] = ""
    questions: List[Question] = Field(..., min_length=1)

    @model_validator(mode="after")
    def unique_question_ids(self):
        check_unique_question_ids(self.questions)
        return self


# Body of PATCH /api/surveys/{id}: the only fields an owner may change
class SurveyPatch(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    questions: Optional[List[Question]] = Field(default=None, min_length=1)

    @model_validator(mode="after")
    def unique_question_ids(self):
        check_unique_question_ids(self.questions)
        return self


# Stored survey returned to clients
class Survey(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str = ""
    description: str = ""
    questions: List[Question] = []
    created_by: str = Field("", alias="createdBy")
    created_at: datetime = Field(..., alias="createdAt")


class SurveyDeleteResponse(BaseModel):
    id: str
    message: str = "Survey deleted successfully"
