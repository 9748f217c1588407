import sys
import os
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from app import create_app
from models import db

# Registers the information tables with the metadata
import information.models  # noqa: F401

app = create_app()

with app.app_context():
    db.create_all()
    print(f"✅ Database initialized at {app.config['SQLALCHEMY_DATABASE_URI']}")
