from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_cors import CORS

# Flask extensions singletons; bound to the app in create_app()

db = SQLAlchemy()
migrate = Migrate()
# Origins come from CORS_ORIGINS at init time
cors = CORS()
