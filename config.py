import os

basedir = os.path.abspath(os.path.dirname(__file__))


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'your-secret-key-here-make-it-long'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'instance', 'wishwallet.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Paystack
    PAYSTACK_BASE_URL = os.environ.get('PAYSTACK_BASE_URL', 'https://api.paystack.co')
    PAYSTACK_SECRET_KEY = os.environ.get('PAYSTACK_SECRET_KEY')
    PAYSTACK_WEBHOOK_SECRET = os.environ.get('PAYSTACK_WEBHOOK_SECRET') or PAYSTACK_SECRET_KEY
    PAYSTACK_TIMEOUT = float(os.environ.get('PAYSTACK_TIMEOUT', 10))

    # Outgoing email is delegated to an HTTP function
    EMAIL_FUNCTION_URL = os.environ.get('EMAIL_FUNCTION_URL')
    EMAIL_FUNCTION_TOKEN = os.environ.get('EMAIL_FUNCTION_TOKEN')
    EMAIL_TIMEOUT = float(os.environ.get('EMAIL_TIMEOUT', 10))

    # Business rules
    CURRENCY = 'NGN'
    CLAIM_EXPIRY_DAYS = int(os.environ.get('CLAIM_EXPIRY_DAYS', 7))
    GUEST_CLAIM_EXPIRY_DAYS = int(os.environ.get('GUEST_CLAIM_EXPIRY_DAYS', 365))
    REMINDER_INTERVAL_DAYS = int(os.environ.get('REMINDER_INTERVAL_DAYS', 2))
    MIN_CONTRIBUTION = float(os.environ.get('MIN_CONTRIBUTION', 100))


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    PAYSTACK_SECRET_KEY = 'sk_test_secret'
    PAYSTACK_WEBHOOK_SECRET = 'sk_test_secret'
    EMAIL_FUNCTION_URL = None
    LOG_LEVEL = 'WARNING'
