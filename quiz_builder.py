"""
QuizCraft - Quiz Authoring and Timed Quiz Platform
Quiz Builder: draft state for the create/edit quiz form
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from quiz_storage import Quiz, new_token


DEFAULT_OPTION_COUNT = 4
MIN_OPTIONS = 2

DEFAULT_DETAILS = {
    'title': '',
    'description': '',
    'time_limit': 30,
    'passing_score': 70,
}


class BuilderError(Exception):
    """An edit the builder refuses to make"""
    pass


@dataclass
class OptionDraft:
    id: str
    text: str = ''
    is_correct: bool = False


@dataclass
class QuestionDraft:
    id: str
    text: str = ''
    options: List[OptionDraft] = field(default_factory=list)
    explanation: str = ''

    def filled_options(self) -> List[OptionDraft]:
        return [o for o in self.options if o.text.strip()]


def default_question() -> QuestionDraft:
    """Blank question with four options, the first marked correct"""
    options = [OptionDraft(id=new_token()) for _ in range(DEFAULT_OPTION_COUNT)]
    options[0].is_correct = True
    return QuestionDraft(id=new_token(), options=options)


class QuizBuilder:
    """Ordered question drafts plus the quiz details being edited"""

    def __init__(self, questions: Optional[List[QuestionDraft]] = None,
                 details: Optional[Dict[str, Any]] = None, quiz_id: Optional[int] = None):
        self.questions = questions if questions else [default_question()]
        self.details = dict(DEFAULT_DETAILS, **(details or {}))
        # Set when editing an existing quiz
        self.quiz_id = quiz_id

    def _question(self, index: int) -> QuestionDraft:
        if not 0 <= index < len(self.questions):
            raise BuilderError(f'No question at position {index + 1}')
        return self.questions[index]

    def _option(self, q_index: int, o_index: int) -> OptionDraft:
        question = self._question(q_index)
        if not 0 <= o_index < len(question.options):
            raise BuilderError(f'Question {q_index + 1} has no option {o_index + 1}')
        return question.options[o_index]

    # Question edits
    def add_question(self) -> QuestionDraft:
        question = default_question()
        self.questions.append(question)
        return question

    def delete_question(self, index: int):
        self._question(index)
        if len(self.questions) <= 1:
            raise BuilderError('A quiz must have at least one question')
        del self.questions[index]

    def update_question(self, index: int, text: Optional[str] = None, explanation: Optional[str] = None):
        question = self._question(index)
        if text is not None:
            question.text = text
        if explanation is not None:
            question.explanation = explanation

    # Option edits
    def update_option(self, q_index: int, o_index: int, text: str):
        self._option(q_index, o_index).text = text

    def add_option(self, q_index: int) -> OptionDraft:
        option = OptionDraft(id=new_token())
        self._question(q_index).options.append(option)
        return option

    def remove_option(self, q_index: int, o_index: int):
        question = self._question(q_index)
        removed = self._option(q_index, o_index)
        if len(question.options) <= MIN_OPTIONS:
            raise BuilderError(f'A question needs at least {MIN_OPTIONS} options')
        del question.options[o_index]
        if removed.is_correct:
            question.options[0].is_correct = True

    def mark_correct(self, q_index: int, o_index: int):
        """Make one option the only correct answer"""
        self._option(q_index, o_index)
        for i, option in enumerate(self.questions[q_index].options):
            option.is_correct = i == o_index

    # Details
    def update_details(self, **details):
        for key, value in details.items():
            if key in DEFAULT_DETAILS and value is not None:
                self.details[key] = value

    def validate_details(self) -> List[str]:
        errors = []
        if not str(self.details.get('title', '')).strip():
            errors.append('Title is required')
        if not str(self.details.get('description', '')).strip():
            errors.append('Description is required')

        time_limit = _to_int(self.details.get('time_limit'))
        if time_limit is None:
            errors.append('Time limit must be a number')
        elif time_limit < 5:
            errors.append('Time limit must be at least 5 seconds')
        elif time_limit > 300:
            errors.append('Time limit cannot exceed 300 seconds')

        passing_score = _to_int(self.details.get('passing_score'))
        if passing_score is None:
            errors.append('Passing score must be a number')
        elif passing_score < 1:
            errors.append('Passing score must be at least 1%')
        elif passing_score > 100:
            errors.append('Passing score cannot exceed 100%')
        return errors

    def validate(self) -> List[str]:
        """Messages describing what blocks submission; empty when the draft is ready"""
        if not self.questions:
            return ['Add at least one question to your quiz']

        errors = []
        for number, question in enumerate(self.questions, start=1):
            if not question.text.strip():
                errors.append(f'Question {number} is missing text')
            filled = question.filled_options()
            if len(filled) < MIN_OPTIONS:
                errors.append(f'Question {number} needs at least {MIN_OPTIONS} options')
            # Blank options are dropped on submit, so the answer must have text
            if not any(o.is_correct for o in filled):
                errors.append(f'Question {number} needs a correct answer')
        return errors

    def to_payload(self) -> Dict[str, Any]:
        """Create/update request body, with blank options stripped"""
        return {
            'title': str(self.details['title']).strip(),
            'description': str(self.details['description']).strip(),
            'timeLimit': _to_int(self.details['time_limit']),
            'passingScore': _to_int(self.details['passing_score']),
            'questions': [
                {
                    'id': q.id,
                    'text': q.text,
                    'options': [
                        {'id': o.id, 'text': o.text, 'isCorrect': o.is_correct}
                        for o in q.filled_options()
                    ],
                    'explanation': q.explanation,
                }
                for q in self.questions
            ],
        }

    # Form & session plumbing
    def apply_form(self, form: Mapping[str, str]):
        """
        Copy the posted builder form into the draft.

        Fields are named ``title``, ``description``, ``time_limit``,
        ``passing_score``, ``q-<i>-text``, ``q-<i>-explanation``,
        ``q-<i>-opt-<j>`` and ``q-<i>-correct`` (the index of the correct option).
        """
        self.update_details(
            title=form.get('title'),
            description=form.get('description'),
            time_limit=form.get('time_limit'),
            passing_score=form.get('passing_score'),
        )
        for i, question in enumerate(self.questions):
            self.update_question(
                i,
                text=form.get(f'q-{i}-text'),
                explanation=form.get(f'q-{i}-explanation'),
            )
            for j in range(len(question.options)):
                text = form.get(f'q-{i}-opt-{j}')
                if text is not None:
                    self.update_option(i, j, text)
            correct = _to_int(form.get(f'q-{i}-correct'))
            if correct is not None and 0 <= correct < len(question.options):
                self.mark_correct(i, correct)

    @classmethod
    def from_quiz(cls, quiz: Quiz) -> 'QuizBuilder':
        """Draft for editing an existing quiz"""
        questions = [
            QuestionDraft(
                id=q.id,
                text=q.text,
                options=[OptionDraft(id=o.id, text=o.text, is_correct=o.is_correct) for o in q.options],
                explanation=q.explanation,
            )
            for q in quiz.questions
        ]
        details = {
            'title': quiz.title,
            'description': quiz.description,
            'time_limit': quiz.time_limit,
            'passing_score': quiz.passing_score,
        }
        return cls(questions=questions, details=details, quiz_id=quiz.id)

    def to_session(self) -> Dict[str, Any]:
        return {
            'quiz_id': self.quiz_id,
            'details': dict(self.details),
            'questions': [
                {
                    'id': q.id,
                    'text': q.text,
                    'explanation': q.explanation,
                    'options': [[o.id, o.text, o.is_correct] for o in q.options],
                }
                for q in self.questions
            ],
        }

    @classmethod
    def from_session(cls, data: Dict[str, Any]) -> 'QuizBuilder':
        questions = [
            QuestionDraft(
                id=q['id'],
                text=q.get('text', ''),
                explanation=q.get('explanation', ''),
                options=[OptionDraft(id=o[0], text=o[1], is_correct=bool(o[2])) for o in q.get('options', [])],
            )
            for q in data.get('questions', [])
        ]
        return cls(questions=questions, details=data.get('details'), quiz_id=data.get('quiz_id'))


def _to_int(value: Any) -> Optional[int]:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None
