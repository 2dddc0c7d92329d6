# Overview: Flask extension instances for database, migrations and rate limiting.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

db = SQLAlchemy()
migrate = Migrate()
# No default limits; individual views opt in. Storage comes from RATELIMIT_STORAGE_URI.
limiter = Limiter(key_func=get_remote_address)
