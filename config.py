import os

basedir = os.path.abspath(os.path.dirname(__file__))


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'change-me-tujifund-development-key'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'instance', 'tujifund.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    DEFAULT_CURRENCY = 'KES'

    # Upper bound for a single checkout, lock waits included
    CHECKOUT_TIMEOUT_SECONDS = float(os.environ.get('CHECKOUT_TIMEOUT_SECONDS', 15))

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    CHECKOUT_TIMEOUT_SECONDS = 10
    LOG_LEVEL = 'DEBUG'
