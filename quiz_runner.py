"""
QuizCraft - Quiz Authoring and Timed Quiz Platform
Timed Quiz Runner: per-question countdown and the question-by-question flow

The runner lives in the server-side session store between requests. The
browser mirrors the countdown, but the deadline is enforced here: every
request calls ``sync`` with the wall clock before acting on the posted form.
"""

from typing import Any, Dict, List, Optional

from quiz_storage import Quiz

INTRO = 'intro'
RUNNING = 'running'
SUBMITTING = 'submitting'
FINISHED = 'finished'


class RunnerError(Exception):
    """Action not allowed in the runner's current state"""
    pass


class Countdown:
    """Whole-second countdown that can be paused"""

    def __init__(self, seconds: int, remaining: Optional[int] = None, paused: bool = False):
        self.seconds = seconds
        self.remaining = seconds if remaining is None else remaining
        self.paused = paused

    def tick(self) -> bool:
        """Advance one second; True exactly when this tick reaches zero"""
        if self.paused or self.remaining <= 0:
            return False
        self.remaining -= 1
        return self.remaining == 0

    def reset(self):
        self.remaining = self.seconds
        self.paused = False

    def pause(self):
        self.paused = True

    def resume(self):
        self.paused = False

    def clear(self):
        """Stop for good; further ticks do nothing"""
        self.remaining = 0
        self.paused = True

    @property
    def expired(self) -> bool:
        return self.remaining <= 0


class QuizRunner:
    """
    State machine for one run through a quiz: intro -> running -> submitting -> finished.

    Only question ids and the id of each correct option are kept. Question
    text is read from the store when a page is rendered.
    """

    def __init__(self, quiz_id: int, time_limit: int, questions: List[Dict[str, str]]):
        self.quiz_id = quiz_id
        self.questions = questions
        self.state = INTRO
        self.current_index = 0
        self.answers: Dict[str, Dict[str, Any]] = {}
        self.countdown = Countdown(time_limit)
        self.last_sync: Optional[float] = None
        self.attempt_id: Optional[int] = None

    @classmethod
    def for_quiz(cls, quiz: Quiz) -> 'QuizRunner':
        questions = []
        for question in quiz.questions:
            correct = question.correct_option()
            questions.append({'id': question.id, 'correct_option_id': correct.id if correct else ''})
        return cls(quiz.id, quiz.time_limit, questions)

    def _require(self, *states: str):
        if self.state not in states:
            raise RunnerError(f'Cannot do that while the quiz is {self.state}')

    @property
    def current_question(self) -> Dict[str, str]:
        return self.questions[self.current_index]

    @property
    def is_last_question(self) -> bool:
        return self.current_index >= len(self.questions) - 1

    @property
    def time_remaining(self) -> int:
        return self.countdown.remaining

    def selected_option(self, question_id: str) -> str:
        answer = self.answers.get(question_id)
        return answer['selectedOptionId'] if answer else ''

    # Transitions
    def start(self, now: float):
        self._require(INTRO)
        if not self.questions:
            raise RunnerError('This quiz has no questions')
        self.state = RUNNING
        self.current_index = 0
        self.countdown.reset()
        self.last_sync = now

    def select(self, option_id: str):
        """Record an answer for the current question, replacing any earlier one"""
        self._require(RUNNING)
        question = self.current_question
        self.answers[question['id']] = {
            'selectedOptionId': option_id,
            'correct': bool(option_id) and option_id == question['correct_option_id'],
        }

    def time_up(self) -> Optional[List[Dict[str, Any]]]:
        """The current question's time ran out: record a blank answer if none was given, then advance"""
        self._require(RUNNING)
        question_id = self.current_question['id']
        if question_id not in self.answers:
            self.answers[question_id] = {'selectedOptionId': '', 'correct': False}
        return self.next()

    def next(self) -> Optional[List[Dict[str, Any]]]:
        """
        Move to the following question.

        On the last question the run moves to ``submitting`` and the answer
        set to submit is returned instead.
        """
        self._require(RUNNING)
        if self.is_last_question:
            self.state = SUBMITTING
            self.countdown.clear()
            return self.submission()
        self.current_index += 1
        self.countdown.reset()
        return None

    def previous(self) -> bool:
        self._require(RUNNING)
        if self.current_index == 0:
            return False
        self.current_index -= 1
        self.countdown.reset()
        return True

    def sync(self, now: float) -> Optional[List[Dict[str, Any]]]:
        """
        Tick the countdown for every whole second since the last sync.

        Expiry fires ``time_up``, possibly more than once if the user was
        away for longer than a question's limit. Returns the submission when
        the run reaches the end.
        """
        if self.state != RUNNING or self.last_sync is None:
            return None

        elapsed = int(now - self.last_sync)
        if elapsed <= 0:
            return None
        self.last_sync += elapsed

        for _ in range(elapsed):
            if self.countdown.tick():
                submission = self.time_up()
                if submission is not None:
                    return submission
        return None

    def submission(self) -> List[Dict[str, Any]]:
        """Answers in question order, in the shape the attempt API expects"""
        return [
            {'questionId': q['id'], **self.answers[q['id']]}
            for q in self.questions if q['id'] in self.answers
        ]

    def finish(self, attempt_id: int):
        self._require(SUBMITTING)
        self.attempt_id = attempt_id
        self.state = FINISHED

    # Session plumbing
    def to_session(self) -> Dict[str, Any]:
        return {
            'quiz_id': self.quiz_id,
            'questions': self.questions,
            'state': self.state,
            'current_index': self.current_index,
            'answers': self.answers,
            'countdown': [self.countdown.seconds, self.countdown.remaining, self.countdown.paused],
            'last_sync': self.last_sync,
            'attempt_id': self.attempt_id,
        }

    @classmethod
    def from_session(cls, data: Dict[str, Any]) -> 'QuizRunner':
        seconds, remaining, paused = data['countdown']
        runner = cls(data['quiz_id'], seconds, data['questions'])
        runner.countdown = Countdown(seconds, remaining, paused)
        runner.state = data['state']
        runner.current_index = data['current_index']
        runner.answers = data['answers']
        runner.last_sync = data['last_sync']
        runner.attempt_id = data.get('attempt_id')
        return runner
