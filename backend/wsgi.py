# backend/wsgi.py
from poscloud import create_app

app = create_app()
