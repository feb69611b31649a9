import os
BASE_DIR = os.path.abspath(os.path.dirname(__file__))

class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key")
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///" + os.path.join(BASE_DIR, "ewaste.db"))
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    STORE_BACKEND = os.environ.get("STORE_BACKEND", "sql")  # 'sql' or 'memory'
    APP_ID = os.environ.get("APP_ID", "clean-collect-demo")
    # seconds a new pickup request waits for the store before it is accepted locally
    CREATE_TIMEOUT_SECONDS = float(os.environ.get("CREATE_TIMEOUT_SECONDS", "1.5"))
    OPERATOR_EMAIL_MARKER = os.environ.get("OPERATOR_EMAIL_MARKER", "admin")
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    # dashboard sessions idle this long lose their live snapshot feed
    SESSION_IDLE_SECONDS = int(os.environ.get("SESSION_IDLE_SECONDS", "3600"))
    # how long a password reset link stays valid
    RESET_TOKEN_MAX_AGE = int(os.environ.get("RESET_TOKEN_MAX_AGE", "3600"))

class TestConfig(Config):
    TESTING = True
    WTF_CSRF_ENABLED = False
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    STORE_BACKEND = "memory"
    CREATE_TIMEOUT_SECONDS = 0.5
    LOG_LEVEL = "DEBUG"
