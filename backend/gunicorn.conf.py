import os

# Bind & workers
bind = os.getenv("GUNICORN_BIND", "0.0.0.0:8000")
workers = int(os.getenv("GUNICORN_WORKERS", "2"))
threads = 1
timeout = 60
graceful_timeout = 30
keepalive = 5

wsgi_app = "sessionguard:create_app()"

# Logs to stdout/stderr; the app itself emits JSON lines
accesslog = "-"
errorlog = "-"
loglevel = os.getenv("LOG_LEVEL", "info").lower()

# Client IPs on refresh tokens depend on these headers (see core/proxy.py)
forwarded_allow_ips = "*"
proxy_protocol = False
