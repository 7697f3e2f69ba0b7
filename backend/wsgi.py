# backend/wsgi.py
from sales_api import create_app

app = create_app()
