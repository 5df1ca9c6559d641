# backend/wsgi.py
from cuehall import create_app

app = create_app()
