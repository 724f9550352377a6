"""
QuizCraft - Quiz Authoring and Timed Quiz Platform
Domain Validation: request schemas for users, quizzes and attempt answers
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from quiz_errors import ValidationError

REQUIRED_MESSAGES = {
    'title': 'Title is required',
    'description': 'Description is required',
    'time_limit': 'Time limit is required',
    'passing_score': 'Passing score is required',
    'questions': 'At least one question is required',
    'username': 'Username is required',
    'password': 'Password is required',
}


class QuizOptionIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    id: Optional[str] = None
    text: str
    is_correct: bool = Field(default=False, alias='isCorrect')

    @field_validator('text')
    @classmethod
    def text_required(cls, value: str) -> str:
        if not value.strip():
            raise ValueError('Option text is required')
        return value


class QuizQuestionIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    id: Optional[str] = None
    text: str
    options: List[QuizOptionIn]
    explanation: str = ''

    @field_validator('text')
    @classmethod
    def text_required(cls, value: str) -> str:
        if not value.strip():
            raise ValueError('Question text is required')
        return value

    @field_validator('explanation', mode='before')
    @classmethod
    def explanation_default(cls, value: Any) -> Any:
        return '' if value is None else value

    @field_validator('options')
    @classmethod
    def at_least_two_options(cls, value: List[QuizOptionIn]) -> List[QuizOptionIn]:
        if len(value) < 2:
            raise ValueError('At least two options are required')
        return value

    @model_validator(mode='after')
    def exactly_one_correct(self) -> 'QuizQuestionIn':
        correct = sum(1 for option in self.options if option.is_correct)
        if correct != 1:
            raise ValueError('Exactly one option must be marked correct')
        return self


class QuizUpdate(BaseModel):
    """Partial quiz body: rules apply only to the fields that are present"""
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    title: Optional[str] = None
    description: Optional[str] = None
    time_limit: Optional[int] = Field(default=None, alias='timeLimit', ge=5, le=300)
    passing_score: Optional[int] = Field(default=None, alias='passingScore', ge=1, le=100)
    questions: Optional[List[QuizQuestionIn]] = None

    @field_validator('title', 'description', 'time_limit', 'passing_score', 'questions', mode='before')
    @classmethod
    def present_fields_not_null(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            raise ValueError(REQUIRED_MESSAGES[info.field_name])
        return value

    @field_validator('title', 'description')
    @classmethod
    def not_blank(cls, value: str, info: ValidationInfo) -> str:
        if not value.strip():
            raise ValueError(REQUIRED_MESSAGES[info.field_name])
        return value.strip()

    @field_validator('questions')
    @classmethod
    def at_least_one_question(cls, value: List[QuizQuestionIn]) -> List[QuizQuestionIn]:
        if not value:
            raise ValueError(REQUIRED_MESSAGES['questions'])
        return value


class QuizCreate(QuizUpdate):
    title: str
    description: str
    time_limit: int = Field(alias='timeLimit', ge=5, le=300)
    passing_score: int = Field(alias='passingScore', ge=1, le=100)
    questions: List[QuizQuestionIn]


class QuizAnswerIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    question_id: str = Field(alias='questionId')
    selected_option_id: str = Field(alias='selectedOptionId')
    # Client-side judgment; the server recomputes correctness
    correct: Optional[bool] = None


class AttemptSubmission(BaseModel):
    answers: List[QuizAnswerIn]


class Credentials(BaseModel):
    username: str
    password: str

    @field_validator('username', 'password', mode='before')
    @classmethod
    def required(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValueError(REQUIRED_MESSAGES[info.field_name])
        return value

    @field_validator('username')
    @classmethod
    def strip_username(cls, value: str) -> str:
        return value.strip()


def _format_errors(exc: PydanticValidationError) -> List[Dict[str, str]]:
    errors = []
    for err in exc.errors():
        message = err['msg']
        if message.startswith('Value error, '):
            message = message[len('Value error, '):]
        errors.append({
            'field': '.'.join(str(part) for part in err['loc']),
            'message': message,
        })
    return errors


def _parse(model: type, body: Any) -> BaseModel:
    if not isinstance(body, dict):
        raise ValidationError([{'field': '', 'message': 'Request body must be a JSON object'}])
    try:
        return model.model_validate(body)
    except PydanticValidationError as e:
        raise ValidationError(_format_errors(e)) from e


def validate_quiz(body: Any) -> Dict[str, Any]:
    """Validate a full quiz body, returning snake_case fields for the store"""
    return _parse(QuizCreate, body).model_dump()


def validate_quiz_update(body: Any) -> Dict[str, Any]:
    """Validate a partial quiz body; only supplied fields are returned"""
    return _parse(QuizUpdate, body).model_dump(exclude_unset=True)


def validate_answers(body: Any) -> List[Dict[str, Any]]:
    submission = _parse(AttemptSubmission, body)
    return [answer.model_dump() for answer in submission.answers]


def validate_credentials(body: Any) -> Dict[str, str]:
    return _parse(Credentials, body).model_dump()
