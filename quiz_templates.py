"""
QuizCraft - Quiz Authoring and Timed Quiz Platform
Template Engine: server-rendered pages (Bootstrap 5, Chart.js, inline timer script)
"""

import json
from typing import Any, Dict, List, Optional

from flask import get_flashed_messages, url_for
from markupsafe import escape

SERVICE_NAME = 'QuizCraft'

FLASH_CLASSES = {
    'success': 'alert-success',
    'danger': 'alert-danger',
    'warning': 'alert-warning',
    'info': 'alert-info',
    'message': 'alert-secondary',
}


def _js(value: Any) -> str:
    """JSON for embedding inside a <script> block"""
    return json.dumps(value).replace('</', '<\\/')


def _flash_html() -> str:
    html = ''
    for category, message in get_flashed_messages(with_categories=True):
        css = FLASH_CLASSES.get(category, 'alert-secondary')
        html += f'''
        <div class="alert {css} alert-dismissible fade show" role="alert">
            {escape(message)}
            <button type="button" class="btn-close" data-bs-dismiss="alert" aria-label="Close"></button>
        </div>
        '''
    return html


class TemplateEngine:
    """Page templates built from Python f-strings around a shared layout"""

    @staticmethod
    def _base_template(context: dict) -> str:
        user = context.get('user')
        show_nav = context.get('show_nav', True)
        active = context.get('active', '')

        nav_html = ''
        if show_nav and user:
            links = [
                ('my_quizzes', url_for('web.my_quizzes'), 'My Quizzes'),
                ('browse', url_for('web.browse_quizzes'), 'All Quizzes'),
                ('create', url_for('web.create_quiz'), 'Create Quiz'),
                ('analytics', url_for('web.analytics'), 'Analytics'),
            ]
            items = ''.join(
                f'<li class="nav-item"><a class="nav-link{" active" if key == active else ""}" href="{href}">{label}</a></li>'
                for key, href, label in links
            )
            nav_html = f'''
            <nav class="navbar navbar-expand-lg navbar-dark bg-primary mb-4">
                <div class="container">
                    <a class="navbar-brand fw-bold" href="{url_for('web.index')}">{SERVICE_NAME}</a>
                    <button class="navbar-toggler" type="button" data-bs-toggle="collapse" data-bs-target="#mainNav">
                        <span class="navbar-toggler-icon"></span>
                    </button>
                    <div class="collapse navbar-collapse" id="mainNav">
                        <ul class="navbar-nav me-auto">{items}</ul>
                        <span class="navbar-text me-3">{escape(user.username)}</span>
                        <a class="btn btn-outline-light btn-sm" href="{url_for('web.logout')}">Log out</a>
                    </div>
                </div>
            </nav>
            '''

        return f'''<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <title>{escape(context.get('title', SERVICE_NAME))}</title>
    <link href="https://cdn.jsdelivr.net/npm/bootstrap@5.3.3/dist/css/bootstrap.min.css" rel="stylesheet">
    <style>
        body {{ background: #f5f6fa; }}
        .card-custom {{ background: #fff; border-radius: 12px; box-shadow: 0 2px 12px rgba(0,0,0,0.06); }}
        .score-ring text {{ font-weight: 700; }}
        .timer-badge {{ font-size: 1.25rem; min-width: 5rem; }}
        .timer-badge.low {{ background: #dc3545 !important; }}
    </style>
</head>
<body>
    {nav_html}
    <main class="container pb-5">
        {_flash_html()}
        {context.get('content', '')}
    </main>
    <script src="https://cdn.jsdelivr.net/npm/bootstrap@5.3.3/dist/js/bootstrap.bundle.min.js"></script>
    {context.get('scripts', '')}
</body>
</html>'''

    # Authentication pages
    @staticmethod
    def _login_template(context: dict) -> str:
        next_page = context.get('next_page') or ''
        return TemplateEngine._base_template({
            **context,
            'title': f'Log in - {SERVICE_NAME}',
            'show_nav': False,
            'content': f'''
            <div class="row justify-content-center mt-5">
                <div class="col-md-6 col-lg-5">
                    <div class="card-custom p-5">
                        <h2 class="text-center mb-1">Welcome back</h2>
                        <p class="text-center text-muted mb-4">Log in to create and take quizzes</p>
                        <form method="POST" novalidate>
                            <input type="hidden" name="next" value="{escape(next_page)}">
                            <div class="mb-3">
                                <label for="username" class="form-label fw-semibold">Username</label>
                                <input type="text" class="form-control" id="username" name="username" required>
                            </div>
                            <div class="mb-4">
                                <label for="password" class="form-label fw-semibold">Password</label>
                                <input type="password" class="form-control" id="password" name="password" required>
                            </div>
                            <div class="d-grid mb-3">
                                <button type="submit" class="btn btn-primary">Log in</button>
                            </div>
                            <p class="text-center mb-0">Don't have an account?
                                <a href="{url_for('web.register')}" class="fw-semibold">Register here</a>
                            </p>
                        </form>
                    </div>
                </div>
            </div>
            '''
        })

    @staticmethod
    def _register_template(context: dict) -> str:
        return TemplateEngine._base_template({
            **context,
            'title': f'Register - {SERVICE_NAME}',
            'show_nav': False,
            'content': f'''
            <div class="row justify-content-center mt-5">
                <div class="col-md-6 col-lg-5">
                    <div class="card-custom p-5">
                        <h2 class="text-center mb-1">Create an account</h2>
                        <p class="text-center text-muted mb-4">Pick a username and password</p>
                        <form method="POST" novalidate>
                            <div class="mb-3">
                                <label for="username" class="form-label fw-semibold">Username</label>
                                <input type="text" class="form-control" id="username" name="username" required>
                            </div>
                            <div class="mb-4">
                                <label for="password" class="form-label fw-semibold">Password</label>
                                <input type="password" class="form-control" id="password" name="password" required>
                            </div>
                            <div class="d-grid mb-3">
                                <button type="submit" class="btn btn-primary">Register</button>
                            </div>
                            <p class="text-center mb-0">Already registered?
                                <a href="{url_for('web.login')}" class="fw-semibold">Log in</a>
                            </p>
                        </form>
                    </div>
                </div>
            </div>
            '''
        })

    # Quiz lists
    @staticmethod
    def _quiz_card(quiz, owned: bool) -> str:
        actions = f'<a href="{url_for("web.take_quiz", quiz_id=quiz.id)}" class="btn btn-primary btn-sm">Take quiz</a>'
        if owned:
            actions += f'''
            <a href="{url_for("web.edit_quiz", quiz_id=quiz.id)}" class="btn btn-outline-secondary btn-sm">Edit</a>
            <button type="button" class="btn btn-outline-danger btn-sm" data-bs-toggle="modal"
                    data-bs-target="#deleteModal" data-quiz-id="{quiz.id}" data-quiz-title="{escape(quiz.title)}">Delete</button>
            '''
        return f'''
        <div class="col-md-6 col-lg-4 mb-4">
            <div class="card-custom h-100 p-4 d-flex flex-column">
                <h5 class="mb-2">{escape(quiz.title)}</h5>
                <p class="text-muted flex-grow-1">{escape(quiz.description)}</p>
                <div class="small text-muted mb-3">
                    {len(quiz.questions)} questions &middot; {quiz.time_limit}s per question &middot; pass at {quiz.passing_score}%
                </div>
                <div class="d-flex gap-2">{actions}</div>
            </div>
        </div>
        '''

    @staticmethod
    def _my_quizzes_template(context: dict) -> str:
        quizzes = context.get('quizzes') or []

        if context.get('load_error'):
            body = f'''
            <div class="card-custom p-5 text-center">
                <h5 class="mb-3">We couldn't load your quizzes</h5>
                <a href="{url_for('web.my_quizzes')}" class="btn btn-primary">Try again</a>
            </div>
            '''
        elif not quizzes:
            body = f'''
            <div class="card-custom p-5 text-center">
                <h5 class="mb-2">You haven't created any quizzes yet</h5>
                <p class="text-muted">Build your first quiz to get started.</p>
                <a href="{url_for('web.create_quiz')}" class="btn btn-primary">Create quiz</a>
            </div>
            '''
        else:
            body = '<div class="row">' + ''.join(TemplateEngine._quiz_card(q, True) for q in quizzes) + '</div>'

        modal = '''
        <div class="modal fade" id="deleteModal" tabindex="-1" aria-hidden="true">
            <div class="modal-dialog">
                <form method="POST" class="modal-content" id="deleteForm">
                    <div class="modal-header">
                        <h5 class="modal-title">Delete quiz</h5>
                        <button type="button" class="btn-close" data-bs-dismiss="modal" aria-label="Close"></button>
                    </div>
                    <div class="modal-body">
                        Delete <strong id="deleteQuizTitle"></strong>? This cannot be undone.
                    </div>
                    <div class="modal-footer">
                        <button type="button" class="btn btn-secondary" data-bs-dismiss="modal">Cancel</button>
                        <button type="submit" class="btn btn-danger">Delete</button>
                    </div>
                </form>
            </div>
        </div>
        '''
        delete_url = url_for('web.delete_quiz', quiz_id=0)
        scripts = f'''
        <script>
            const deleteUrl = {_js(delete_url)};
            document.getElementById('deleteModal').addEventListener('show.bs.modal', function (event) {{
                const button = event.relatedTarget;
                document.getElementById('deleteQuizTitle').textContent = button.getAttribute('data-quiz-title');
                document.getElementById('deleteForm').action = deleteUrl.replace('/0/', '/' + button.getAttribute('data-quiz-id') + '/');
            }});
        </script>
        '''

        return TemplateEngine._base_template({
            **context,
            'title': f'My Quizzes - {SERVICE_NAME}',
            'active': 'my_quizzes',
            'content': f'''
            <div class="d-flex justify-content-between align-items-center mb-4">
                <h2 class="mb-0">My Quizzes</h2>
                <a href="{url_for('web.create_quiz')}" class="btn btn-primary">New quiz</a>
            </div>
            {body}
            {modal}
            ''',
            'scripts': scripts,
        })

    @staticmethod
    def _browse_template(context: dict) -> str:
        quizzes = context.get('quizzes') or []
        user = context.get('user')
        if quizzes:
            body = '<div class="row">' + ''.join(
                TemplateEngine._quiz_card(q, bool(user) and q.created_by == user.id) for q in quizzes
            ) + '</div>'
        else:
            body = '<div class="card-custom p-5 text-center text-muted">No quizzes have been published yet.</div>'

        return TemplateEngine._base_template({
            **context,
            'title': f'All Quizzes - {SERVICE_NAME}',
            'active': 'browse',
            'content': f'<h2 class="mb-4">All Quizzes</h2>{body}',
        })

    # Builder
    @staticmethod
    def _builder_template(context: dict) -> str:
        builder = context['builder']
        details = builder.details
        editing = builder.quiz_id is not None

        questions_html = ''
        for i, question in enumerate(builder.questions):
            options_html = ''
            for j, option in enumerate(question.options):
                checked = 'checked' if option.is_correct else ''
                options_html += f'''
                <div class="input-group mb-2">
                    <div class="input-group-text">
                        <input class="form-check-input mt-0" type="radio" name="q-{i}-correct" value="{j}" {checked}
                               title="Mark as the correct answer">
                    </div>
                    <input type="text" class="form-control" name="q-{i}-opt-{j}" value="{escape(option.text)}"
                           placeholder="Option {j + 1}">
                    <button type="submit" name="action" value="remove_option:{i}:{j}" class="btn btn-outline-danger"
                            title="Remove option">&times;</button>
                </div>
                '''
            questions_html += f'''
            <div class="card-custom p-4 mb-4">
                <div class="d-flex justify-content-between align-items-center mb-3">
                    <h5 class="mb-0">Question {i + 1}</h5>
                    <button type="submit" name="action" value="delete_question:{i}" class="btn btn-outline-danger btn-sm">
                        Delete question
                    </button>
                </div>
                <div class="mb-3">
                    <input type="text" class="form-control" name="q-{i}-text" value="{escape(question.text)}"
                           placeholder="Enter your question">
                </div>
                <label class="form-label fw-semibold">Options <span class="text-muted small">(select the correct answer)</span></label>
                {options_html}
                <button type="submit" name="action" value="add_option:{i}" class="btn btn-link px-0">+ Add option</button>
                <div class="mt-3">
                    <label class="form-label fw-semibold">Explanation <span class="text-muted small">(optional)</span></label>
                    <textarea class="form-control" name="q-{i}-explanation" rows="2"
                              placeholder="Explain the correct answer">{escape(question.explanation)}</textarea>
                </div>
            </div>
            '''

        heading = 'Edit Quiz' if editing else 'Create a New Quiz'
        submit_label = 'Save changes' if editing else 'Create quiz'

        return TemplateEngine._base_template({
            **context,
            'title': f'{heading} - {SERVICE_NAME}',
            'active': '' if editing else 'create',
            'content': f'''
            <h2 class="mb-4">{heading}</h2>
            <form method="POST" novalidate>
                <div class="card-custom p-4 mb-4">
                    <div class="mb-3">
                        <label for="title" class="form-label fw-semibold">Quiz title</label>
                        <input type="text" class="form-control" id="title" name="title" value="{escape(details['title'])}"
                               placeholder="Enter a title for your quiz">
                    </div>
                    <div class="mb-3">
                        <label for="description" class="form-label fw-semibold">Description</label>
                        <textarea class="form-control" id="description" name="description" rows="3"
                                  placeholder="Describe what this quiz is about">{escape(details['description'])}</textarea>
                    </div>
                    <div class="row">
                        <div class="col-md-6 mb-3">
                            <label for="time_limit" class="form-label fw-semibold">Time limit per question (seconds)</label>
                            <input type="number" class="form-control" id="time_limit" name="time_limit" min="5" max="300"
                                   value="{escape(details['time_limit'])}">
                        </div>
                        <div class="col-md-6 mb-3">
                            <label for="passing_score" class="form-label fw-semibold">Passing score (%)</label>
                            <input type="number" class="form-control" id="passing_score" name="passing_score" min="1" max="100"
                                   value="{escape(details['passing_score'])}">
                        </div>
                    </div>
                </div>
                {questions_html}
                <div class="d-flex justify-content-between">
                    <button type="submit" name="action" value="add_question" class="btn btn-outline-primary">+ Add question</button>
                    <div class="d-flex gap-2">
                        <a href="{url_for('web.cancel_builder')}" class="btn btn-outline-secondary">Cancel</a>
                        <button type="submit" name="action" value="save" class="btn btn-primary">{submit_label}</button>
                    </div>
                </div>
            </form>
            '''
        })

    # Taking a quiz
    @staticmethod
    def _quiz_intro_template(context: dict) -> str:
        quiz = context['quiz']
        return TemplateEngine._base_template({
            **context,
            'title': f'{quiz.title} - {SERVICE_NAME}',
            'content': f'''
            <div class="row justify-content-center">
                <div class="col-lg-8">
                    <div class="card-custom p-5 text-center">
                        <h2 class="mb-2">{escape(quiz.title)}</h2>
                        <p class="text-muted mb-4">{escape(quiz.description)}</p>
                        <div class="row mb-4">
                            <div class="col"><div class="fs-4 fw-bold">{len(quiz.questions)}</div><div class="text-muted small">Questions</div></div>
                            <div class="col"><div class="fs-4 fw-bold">{quiz.time_limit}s</div><div class="text-muted small">Per question</div></div>
                            <div class="col"><div class="fs-4 fw-bold">{quiz.passing_score}%</div><div class="text-muted small">To pass</div></div>
                        </div>
                        <p class="small text-muted">Each question has its own timer. When it runs out the quiz moves on
                            and an unanswered question counts as wrong.</p>
                        <form method="POST">
                            <button type="submit" name="action" value="start" class="btn btn-primary btn-lg">Start quiz</button>
                        </form>
                    </div>
                </div>
            </div>
            '''
        })

    @staticmethod
    def _quiz_question_template(context: dict) -> str:
        quiz = context['quiz']
        question = context['question']
        runner = context['runner']
        index = runner.current_index
        total = len(runner.questions)
        selected = runner.selected_option(question.id)
        progress = int(100 * (index + 1) / total) if total else 0

        options_html = ''
        for i, option in enumerate(question.options):
            checked = 'checked' if option.id == selected else ''
            options_html += f'''
            <div class="form-check border rounded p-3 mb-2 ps-5">
                <input class="form-check-input" type="radio" name="option" id="option_{i}"
                       value="{escape(option.id)}" {checked}>
                <label class="form-check-label w-100" for="option_{i}">
                    <strong>{chr(65 + i) if i < 26 else i + 1}.</strong> {escape(option.text)}
                </label>
            </div>
            '''

        prev_btn = ''
        if index > 0:
            prev_btn = '<button type="submit" name="action" value="previous" class="btn btn-outline-secondary">Previous</button>'
        next_label = 'Finish quiz' if runner.is_last_question else 'Next question'

        scripts = f'''
        <script>
            let timeRemaining = {int(runner.time_remaining)};
            const timeLimit = {int(runner.countdown.seconds)};
            const display = document.getElementById('timeDisplay');
            const form = document.getElementById('questionForm');
            let expired = false;

            function updateTimer() {{
                if (expired) return;
                display.textContent = timeRemaining + 's';
                display.classList.toggle('low', timeRemaining <= Math.max(5, Math.floor(timeLimit / 4)));
                if (timeRemaining <= 0) {{
                    expired = true;
                    document.getElementById('actionField').value = 'timeout';
                    form.submit();
                    return;
                }}
                timeRemaining--;
            }}

            setInterval(updateTimer, 1000);
            updateTimer();
        </script>
        '''

        return TemplateEngine._base_template({
            **context,
            'title': f'{quiz.title} - {SERVICE_NAME}',
            'content': f'''
            <div class="row justify-content-center">
                <div class="col-lg-8">
                    <div class="d-flex justify-content-between align-items-center mb-2">
                        <span class="text-muted">Question {index + 1} of {total}</span>
                        <span class="badge bg-primary timer-badge" id="timeDisplay">{int(runner.time_remaining)}s</span>
                    </div>
                    <div class="progress mb-4" style="height: 6px;">
                        <div class="progress-bar" role="progressbar" style="width: {progress}%"></div>
                    </div>
                    <div class="card-custom p-4">
                        <h4 class="mb-4">{escape(question.text)}</h4>
                        <form method="POST" id="questionForm">
                            <input type="hidden" name="question_id" value="{escape(question.id)}">
                            <input type="hidden" name="action_field" id="actionField" value="">
                            {options_html}
                            <div class="d-flex justify-content-between mt-4">
                                <div>{prev_btn}</div>
                                <button type="submit" name="action" value="next" class="btn btn-primary">{next_label}</button>
                            </div>
                        </form>
                    </div>
                </div>
            </div>
            ''',
            'scripts': scripts,
        })

    @staticmethod
    def _submit_retry_template(context: dict) -> str:
        quiz = context['quiz']
        return TemplateEngine._base_template({
            **context,
            'title': f'{quiz.title} - {SERVICE_NAME}',
            'content': f'''
            <div class="row justify-content-center">
                <div class="col-lg-6">
                    <div class="card-custom p-5 text-center">
                        <h4 class="mb-3">Your answers haven't been submitted yet</h4>
                        <p class="text-muted">Something went wrong while saving your attempt. Your answers are kept.</p>
                        <form method="POST">
                            <button type="submit" name="action" value="submit" class="btn btn-primary">Submit answers</button>
                        </form>
                    </div>
                </div>
            </div>
            '''
        })

    # Results
    @staticmethod
    def _score_ring(score: int, passed: bool) -> str:
        radius = 54
        circumference = 2 * 3.14159 * radius
        offset = circumference * (1 - score / 100)
        color = '#198754' if passed else '#dc3545'
        return f'''
        <svg class="score-ring" width="140" height="140" viewBox="0 0 140 140">
            <circle cx="70" cy="70" r="{radius}" fill="none" stroke="#e9ecef" stroke-width="12"/>
            <circle cx="70" cy="70" r="{radius}" fill="none" stroke="{color}" stroke-width="12"
                    stroke-linecap="round" transform="rotate(-90 70 70)"
                    stroke-dasharray="{circumference:.2f}" stroke-dashoffset="{offset:.2f}"/>
            <text x="70" y="78" text-anchor="middle" font-size="26" fill="{color}">{score}%</text>
        </svg>
        '''

    @staticmethod
    def _quiz_results_template(context: dict) -> str:
        attempt = context['attempt']
        review: List[Dict[str, Any]] = context['review']
        title = context['quiz_title']
        passing_score = context['passing_score']
        correct_count = sum(1 for item in review if item['correct'])

        verdict = (
            '<span class="badge bg-success fs-6">Passed</span>' if attempt.passed
            else '<span class="badge bg-danger fs-6">Failed</span>'
        )

        review_html = ''
        for number, item in enumerate(review, start=1):
            status = ('border-success', 'Correct') if item['correct'] else ('border-danger', 'Incorrect')
            your_answer = escape(item['your_answer']) if item['your_answer'] else '<em class="text-muted">No answer</em>'
            explanation = ''
            if item['explanation']:
                explanation = f'<div class="mt-2 small bg-light rounded p-2"><strong>Explanation:</strong> {escape(item["explanation"])}</div>'
            review_html += f'''
            <div class="card-custom p-4 mb-3 border-start border-4 {status[0]}">
                <div class="d-flex justify-content-between">
                    <h6 class="mb-2">{number}. {escape(item['text'])}</h6>
                    <span class="small fw-semibold">{status[1]}</span>
                </div>
                <div class="small"><strong>Your answer:</strong> {your_answer}</div>
                <div class="small"><strong>Correct answer:</strong> {escape(item['correct_answer'])}</div>
                {explanation}
            </div>
            '''

        retake = ''
        if context.get('quiz_available'):
            retake = f'<a href="{url_for("web.take_quiz", quiz_id=attempt.quiz_id)}" class="btn btn-outline-primary">Take again</a>'

        return TemplateEngine._base_template({
            **context,
            'title': f'Results - {SERVICE_NAME}',
            'content': f'''
            <div class="row justify-content-center">
                <div class="col-lg-8">
                    <div class="card-custom p-5 text-center mb-4">
                        <h3 class="mb-3">{escape(title)}</h3>
                        {TemplateEngine._score_ring(attempt.score, attempt.passed)}
                        <div class="mt-3">{verdict}</div>
                        <p class="text-muted mt-3 mb-0">You answered {correct_count} of {len(review)} questions correctly.
                            Passing score: {passing_score}%</p>
                    </div>
                    <h4 class="mb-3">Question review</h4>
                    {review_html}
                    <div class="d-flex gap-2 mt-4">
                        <a href="{url_for('web.my_quizzes')}" class="btn btn-primary">Back to my quizzes</a>
                        {retake}
                    </div>
                </div>
            </div>
            '''
        })

    # Analytics
    @staticmethod
    def _analytics_template(context: dict) -> str:
        dashboard = context['dashboard']
        summary = dashboard['summary']

        if not summary['total_attempts']:
            return TemplateEngine._base_template({
                **context,
                'title': f'Analytics - {SERVICE_NAME}',
                'active': 'analytics',
                'content': f'''
                <h2 class="mb-4">Analytics</h2>
                <div class="card-custom p-5 text-center">
                    <h5 class="mb-2">No quiz attempts yet</h5>
                    <p class="text-muted">Take a quiz to see your performance here.</p>
                    <a href="{url_for('web.browse_quizzes')}" class="btn btn-primary">Browse quizzes</a>
                </div>
                '''
            })

        rows = ''.join(
            f'<tr><td>{escape(entry["name"])}</td><td>{entry["attempts"]}</td><td>{entry["avg_score"]}%</td></tr>'
            for entry in dashboard['per_quiz']
        )

        scripts = f'''
        <script src="https://cdn.jsdelivr.net/npm/chart.js@4.4.1/dist/chart.umd.min.js"></script>
        <script>
            const distribution = {_js(dashboard['distribution'])};
            const passFail = {_js(dashboard['pass_fail'])};
            const perQuiz = {_js(dashboard['per_quiz'])};

            new Chart(document.getElementById('distributionChart'), {{
                type: 'bar',
                data: {{
                    labels: distribution.map(b => b.name),
                    datasets: [{{ label: 'Attempts', data: distribution.map(b => b.count), backgroundColor: '#4F46E5' }}]
                }},
                options: {{ scales: {{ y: {{ beginAtZero: true, ticks: {{ precision: 0 }} }} }} }}
            }});

            new Chart(document.getElementById('passFailChart'), {{
                type: 'doughnut',
                data: {{
                    labels: passFail.map(p => p.name),
                    datasets: [{{ data: passFail.map(p => p.value), backgroundColor: ['#4F46E5', '#EF4444'] }}]
                }}
            }});

            new Chart(document.getElementById('perQuizChart'), {{
                type: 'bar',
                data: {{
                    labels: perQuiz.map(q => q.name),
                    datasets: [{{ label: 'Average score (%)', data: perQuiz.map(q => q.avg_score), backgroundColor: '#4F46E5' }}]
                }},
                options: {{ scales: {{ y: {{ beginAtZero: true, max: 100 }} }} }}
            }});
        </script>
        '''

        return TemplateEngine._base_template({
            **context,
            'title': f'Analytics - {SERVICE_NAME}',
            'active': 'analytics',
            'content': f'''
            <h2 class="mb-4">Analytics</h2>
            <div class="row mb-4">
                <div class="col-md-3 mb-3"><div class="card-custom p-4 text-center">
                    <div class="text-muted small">Total attempts</div><div class="fs-3 fw-bold">{summary['total_attempts']}</div></div></div>
                <div class="col-md-3 mb-3"><div class="card-custom p-4 text-center">
                    <div class="text-muted small">Average score</div><div class="fs-3 fw-bold">{summary['average_score']}%</div></div></div>
                <div class="col-md-3 mb-3"><div class="card-custom p-4 text-center">
                    <div class="text-muted small">Passed</div><div class="fs-3 fw-bold text-success">{summary['passed']}</div></div></div>
                <div class="col-md-3 mb-3"><div class="card-custom p-4 text-center">
                    <div class="text-muted small">Failed</div><div class="fs-3 fw-bold text-danger">{summary['failed']}</div></div></div>
            </div>
            <div class="row mb-4">
                <div class="col-lg-7 mb-3"><div class="card-custom p-4">
                    <h5>Score distribution</h5><canvas id="distributionChart"></canvas></div></div>
                <div class="col-lg-5 mb-3"><div class="card-custom p-4">
                    <h5>Pass / fail</h5><canvas id="passFailChart"></canvas></div></div>
            </div>
            <div class="card-custom p-4 mb-4">
                <h5>Performance by quiz</h5>
                <canvas id="perQuizChart" class="mb-4"></canvas>
                <table class="table">
                    <thead><tr><th>Quiz</th><th>Attempts</th><th>Average score</th></tr></thead>
                    <tbody>{rows}</tbody>
                </table>
            </div>
            ''',
            'scripts': scripts,
        })


def render_template(template_name: str, **context) -> str:
    """Render template with context variables"""
    template_map = {
        'login': TemplateEngine._login_template,
        'register': TemplateEngine._register_template,
        'my_quizzes': TemplateEngine._my_quizzes_template,
        'browse': TemplateEngine._browse_template,
        'builder': TemplateEngine._builder_template,
        'quiz_intro': TemplateEngine._quiz_intro_template,
        'quiz_question': TemplateEngine._quiz_question_template,
        'submit_retry': TemplateEngine._submit_retry_template,
        'quiz_results': TemplateEngine._quiz_results_template,
        'analytics': TemplateEngine._analytics_template,
    }
    template_func = template_map.get(template_name)
    if template_func is None:
        raise KeyError(f'Unknown template: {template_name}')
    return template_func(context)


def build_review(attempt) -> List[Dict[str, Any]]:
    """Per-question review rows built from the attempt's own snapshot of the quiz"""
    answers = {a.question_id: a for a in attempt.answers}
    review = []
    for question in attempt.quiz_snapshot.get('questions', []):
        options = {o['id']: o for o in question.get('options', [])}
        answer = answers.get(question['id'])
        selected = options.get(answer.selected_option_id) if answer and answer.selected_option_id else None
        correct_option: Optional[Dict[str, Any]] = next((o for o in question.get('options', []) if o.get('isCorrect')), None)
        review.append({
            'text': question.get('text', ''),
            'your_answer': selected['text'] if selected else '',
            'correct_answer': correct_option['text'] if correct_option else '',
            'correct': bool(answer and answer.correct),
            'explanation': question.get('explanation') or '',
        })
    return review
