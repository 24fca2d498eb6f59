def init_app(app):
    """Register all API blueprints."""
    from api.practice_tests import practice_test_bp
    from api.questions import question_bp
    from api.submissions import submission_bp

    app.register_blueprint(practice_test_bp)
    app.register_blueprint(question_bp)
    app.register_blueprint(submission_bp)
