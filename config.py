import os

# 获取当前文件所在的文件夹路径
BASE_DIR = os.path.abspath(os.path.dirname(__file__))


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-key-change-later")

    # 数据库路径：默认在当前项目文件夹下自动生成 app.db
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", "sqlite:///" + os.path.join(BASE_DIR, "app.db")
    )

    # 关闭不必要的警告
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Excel uploads are capped at 10 MB
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024

    # Worksheet read by the question importer
    IMPORT_SHEET_NAME = os.environ.get("IMPORT_SHEET_NAME", "Questions")

    # Seconds after which an unreleased import claim may be taken over
    IMPORT_LOCK_TIMEOUT = int(os.environ.get("IMPORT_LOCK_TIMEOUT", "600"))

    # IELTS listening/reading papers always have 40 questions
    TOTAL_QUESTIONS = int(os.environ.get("TOTAL_QUESTIONS", "40"))

    SUBMISSION_FEEDBACK = os.environ.get("SUBMISSION_FEEDBACK", "this is good feedback")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


class TestingConfig(Config):
    __test__ = False

    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
