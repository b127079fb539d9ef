# backend/wsgi.py
from pos_core import create_app

app = create_app()
