# WSGI entry point
# ────────────────
# Point your WSGI server at ``wsgi:application``, e.g.
#   gunicorn --workers 2 --bind 0.0.0.0:3000 wsgi:application
#
# IMPORTANT: configure storage credentials and SECRET_KEY in .env first.

import os

from dotenv import load_dotenv

# ── Load environment variables from the project's .env ──────────────────
project_home = os.path.dirname(os.path.abspath(__file__))
load_dotenv(os.path.join(project_home, ".env"))

# Import the Flask app
from imagehost import create_app  # noqa: E402

application = create_app()
