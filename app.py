import logging
import os
from dotenv import load_dotenv
from flask import Flask
from flask_cors import CORS
from flask_migrate import Migrate
from config import config_dict
from models import db
from routes.progress import progress_bp

load_dotenv()

migrate = Migrate()


def create_app(config_name=None):
    app = Flask(__name__)

    env = (config_name or os.environ.get("FLASK_ENV", "production")).lower()
    app.config.from_object(config_dict.get(env, config_dict["production"]))

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger = logging.getLogger(__name__)
    logger.info("Environment: %s", env)

    CORS(app, resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"], "supports_credentials": True}})

    db.init_app(app)
    migrate.init_app(app, db)

    @app.route('/')
    def home():
        return "Welcome to the LMS progression service!"

    app.register_blueprint(progress_bp, url_prefix='/api/progress')

    return app


if __name__ == '__main__':
    app = create_app()
    app.run(debug=app.config['DEBUG'])
