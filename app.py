from flask import Flask, jsonify

from api import init_app as init_api
from config import Config
from models import db


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    db.init_app(app)
    init_api(app)

    @app.errorhandler(413)
    def file_too_large(_error):
        return jsonify({"ok": False, "error": "file_too_large", "message": "Upload exceeds 10 MB"}), 413

    @app.route("/health")
    def health():
        return jsonify({"ok": True})

    return app


app = create_app()

if __name__ == "__main__":
    app.run(debug=True)
