# Overview: Flask extension instances for database and migrations.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

db = SQLAlchemy()

# SQLite cannot ALTER constraints in place; batch mode rebuilds the table.
# compare_type lets autogenerate see Numeric precision changes on money columns.
migrate = Migrate(render_as_batch=True, compare_type=True)
