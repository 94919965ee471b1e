from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager

# Extensions are created here and initialised in create_app().

db = SQLAlchemy()
login_manager = LoginManager()
