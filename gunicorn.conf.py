import os

# Quizzes, attempts and sessions live in process memory, so keep one worker
bind = "0.0.0.0:" + os.getenv("PORT", "5000")
workers = 1
threads = int(os.getenv("WEB_THREADS", "8"))
timeout = 90
graceful_timeout = 30
keepalive = 5
accesslog = "-"
errorlog = "-"
