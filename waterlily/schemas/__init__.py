from .auth import SignInRequest, SignUpRequest, Token, UserOut
from .response import Answer, Response, ResponseCreate
from .survey import (
    Question,
    QuestionKind,
    Survey,
    SurveyCreate,
    SurveyDeleteResponse,
    SurveyPatch,
)

__all__ = [
    "Answer",
    "Question",
    "QuestionKind",
    "Response",
    "ResponseCreate",
    "SignInRequest",
    "SignUpRequest",
    "Survey",
    "SurveyCreate",
    "SurveyDeleteResponse",
    "SurveyPatch",
    "Token",
    "UserOut",
]
