# Overview: Flask extension instances shared by the app factory, models and migrations.

import os

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

# backend/migrations, resolved from the package so `flask db` works from any cwd
MIGRATIONS_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "migrations")

db = SQLAlchemy()
migrate = Migrate(directory=MIGRATIONS_DIR)
