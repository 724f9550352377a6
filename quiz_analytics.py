"""
QuizCraft - Quiz Authoring and Timed Quiz Platform
Analytics: aggregates over a user's attempts for the dashboard
"""

from typing import Any, Dict, List, Optional

from quiz_storage import Quiz, QuizAttempt

SCORE_BUCKETS = [
    ('0-20%', 0, 20),
    ('21-40%', 21, 40),
    ('41-60%', 41, 60),
    ('61-80%', 61, 80),
    ('81-100%', 81, 100),
]


def rounded_average(total: int, count: int) -> int:
    """total / count rounded half up; 0 for an empty set"""
    if count <= 0:
        return 0
    return (2 * total + count) // (2 * count)


class QuizAnalytics:
    @staticmethod
    def summary(attempts: List[QuizAttempt]) -> Dict[str, int]:
        """Total attempts, rounded average score, passed and failed counts"""
        passed = sum(1 for a in attempts if a.passed)
        return {
            'total_attempts': len(attempts),
            'average_score': rounded_average(sum(a.score for a in attempts), len(attempts)),
            'passed': passed,
            'failed': len(attempts) - passed,
        }

    @staticmethod
    def score_distribution(attempts: List[QuizAttempt]) -> List[Dict[str, Any]]:
        distribution = [{'name': name, 'low': low, 'high': high, 'count': 0} for name, low, high in SCORE_BUCKETS]
        for attempt in attempts:
            for bucket in distribution:
                if bucket['low'] <= attempt.score <= bucket['high']:
                    bucket['count'] += 1
                    break
        return distribution

    @staticmethod
    def pass_fail(attempts: List[QuizAttempt]) -> List[Dict[str, Any]]:
        passed = sum(1 for a in attempts if a.passed)
        return [
            {'name': 'Passed', 'value': passed},
            {'name': 'Failed', 'value': len(attempts) - passed},
        ]

    @staticmethod
    def quiz_title(quiz_id: int, quizzes: List[Quiz], attempt: Optional[QuizAttempt] = None) -> str:
        for quiz in quizzes:
            if quiz.id == quiz_id:
                return quiz.title
        if attempt is not None and attempt.quiz_snapshot.get('title'):
            return attempt.quiz_snapshot['title']
        return f'Quiz #{quiz_id}'

    @staticmethod
    def quiz_performance(attempts: List[QuizAttempt], quizzes: List[Quiz]) -> List[Dict[str, Any]]:
        """Attempt count and rounded average score per quiz, in order of first attempt"""
        grouped: Dict[int, Dict[str, Any]] = {}
        for attempt in attempts:
            entry = grouped.setdefault(attempt.quiz_id, {'attempts': 0, 'total': 0, 'latest': attempt})
            entry['attempts'] += 1
            entry['total'] += attempt.score
            entry['latest'] = attempt

        return [
            {
                'quiz_id': quiz_id,
                'name': QuizAnalytics.quiz_title(quiz_id, quizzes, entry['latest']),
                'attempts': entry['attempts'],
                'avg_score': rounded_average(entry['total'], entry['attempts']),
            }
            for quiz_id, entry in grouped.items()
        ]

    @staticmethod
    def build_dashboard(attempts: List[QuizAttempt], quizzes: List[Quiz]) -> Dict[str, Any]:
        return {
            'summary': QuizAnalytics.summary(attempts),
            'distribution': QuizAnalytics.score_distribution(attempts),
            'pass_fail': QuizAnalytics.pass_fail(attempts),
            'per_quiz': QuizAnalytics.quiz_performance(attempts, quizzes),
        }
