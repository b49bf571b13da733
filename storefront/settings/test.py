from .base import *

DEBUG = False

SECRET_KEY = 'test-secret-key'

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

ALLOWED_HOSTS = ['testserver']

MIDTRANS_SERVER_KEY = 'SB-Mid-server-test'
MIDTRANS_CLIENT_KEY = 'SB-Mid-client-test'
MIDTRANS_IS_PRODUCTION = False
MIDTRANS_VERIFY_SIGNATURE = True

ADMIN_JWT_SECRET = 'test-admin-secret-for-signing-tokens-0123456789'

ORDER_LOCK_TIMEOUT = 2
