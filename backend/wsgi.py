# backend/wsgi.py
from innkeep import create_app

app = create_app()
