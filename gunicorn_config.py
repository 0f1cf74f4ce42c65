"""
Gunicorn configuration for the CountyStats service.

Run with:
    gunicorn -c gunicorn_config.py wsgi:server

One gthread worker owns the cache warm worker, so overlapping warmcache
requests coalesce into a single cycle. Request threads resolve counties
concurrently; each cold resolve holds up to two PostGIS connections, so
keep DB_POOL_MAX at or above 2 * GUNICORN_THREADS to avoid waiting.
"""

import os

bind = f"0.0.0.0:{os.getenv('PORT', '8050')}"

# Must stay at 1: a second worker would run its own warm cycles
workers = 1
worker_class = "gthread"
threads = int(os.getenv("GUNICORN_THREADS", "8"))

# Cold county aggregations run ST_Intersection over every feature
timeout = int(os.getenv("GUNICORN_TIMEOUT", "120"))
graceful_timeout = 30
keepalive = 5

accesslog = "-"
errorlog = "-"
loglevel = os.getenv("GUNICORN_LOG_LEVEL", "info")
access_log_format = '%(h)s "%(r)s" %(s)s %(b)s %(D)sus'

proc_name = "countystats"

# Services open their pool and Redis client inside the worker, not the master
preload_app = False


def on_starting(server):
    server.log.info(f"[GUNICORN] Starting CountyStats on {bind} ({threads} threads)")


def worker_exit(server, worker):
    """Close the PostGIS pool when the worker exits."""
    from wsgi import shutdown
    shutdown()
