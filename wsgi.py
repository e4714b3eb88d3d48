"""WSGI entrypoint for Gunicorn.

Usage:
  gunicorn -w 1 -b 0.0.0.0:8000 wsgi:app

Run the auto-result scheduler in one place only: either set
AUTO_RESULT_ENABLED for a single web worker, or use scripts/run_scheduler.py.
"""

from matka import create_app

app = create_app()
