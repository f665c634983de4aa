# donormatch/settings_test.py
"""
Settings for the test suite: file-backed test database, eager Celery, local mail
"""
import os

from .settings import *  # noqa: F401,F403

if DATABASES['default']['ENGINE'] == 'django.db.backends.sqlite3':
    # A real file so threads get their own connections and SQLite file locking
    DATABASES['default']['TEST'] = {
        'NAME': os.environ.get('DATABASE_TEST_NAME', str(BASE_DIR / 'test_donormatch.sqlite3')),
    }

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']
