# gunicorn.conf.py
import multiprocessing
import os

# Network (a reverse proxy sits in front)
bind = os.environ.get("GUNICORN_BIND", "0.0.0.0:8000")
forwarded_allow_ips = os.environ.get("FORWARDED_ALLOW_IPS", "127.0.0.1")

# Workers: threaded so slow email backends don't block other requests.
# Purchases are serialized by conditional UPDATEs in the database, so any
# number of workers and threads is safe.
workers = int(os.environ.get("WEB_CONCURRENCY", multiprocessing.cpu_count() * 2 + 1))
threads = int(os.environ.get("GUNICORN_THREADS", "4"))
worker_class = "gthread"
timeout = int(os.environ.get("GUNICORN_TIMEOUT", "30"))
graceful_timeout = 20

# Logging goes to stdout/stderr; app logs use Django's LOGGING config
accesslog = "-"
errorlog = "-"
loglevel = os.environ.get("BOOKMARKET_LOG_LEVEL", "info").lower()

wsgi_app = "bookmarket_project.wsgi:application"
