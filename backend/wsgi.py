# backend/wsgi.py
from shopflow import create_app

app = create_app()
