"""Flask application factory for the ClipStudio web API."""

import atexit

from flask import Flask, jsonify

from clipstudio.engine import Editor


def create_app(editor: Editor | None = None) -> Flask:
    app = Flask(__name__)
    if editor is None:
        editor = Editor()
        atexit.register(editor.shutdown)
    app.config["EDITOR"] = editor

    from clipstudio.web.routes import bp
    app.register_blueprint(bp)

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({"error": "Not found"}), 404

    return app
