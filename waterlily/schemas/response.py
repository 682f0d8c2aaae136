from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class Answer(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question_id: str = Field(..., alias="questionId", min_length=1)
    # single string for text questions, list of strings for multiple choice
    answer: Union[str, List[str]]


# Body of POST /api/responses
class ResponseCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    survey_id: str = Field(..., alias="surveyId", min_length=1)
    answers: List[Answer] = Field(..., min_length=1)
    responded_email: Optional[str] = Field(default=None, alias="respondedEmail")


# Stored response returned to clients
class Response(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    survey_id: str = Field("", alias="surveyId")
    answers: List[Answer] = []
    responded_email: Optional[str] = Field(default=None, alias="respondedEmail")
    created_at: datetime = Field(..., alias="createdAt")
