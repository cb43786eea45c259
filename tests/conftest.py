import datetime
import os

# CONFIG is read from the environment at import time
os.environ.setdefault('JWT_SECRET', 'testsecret')
os.environ.setdefault('ADMIN_API_KEY', 'test-admin-key')
os.environ.setdefault('DEFAULT_RATE', '10000 per minute')
os.environ.setdefault('SLACK_SIGNING_SECRET', 'test-signing-secret')
os.environ.setdefault('SLACK_BOT_TOKEN', 'xoxb-test')
os.environ.setdefault('SLACK_IDS_RUN_IMPORT', '["U_ADMIN"]')
os.environ.setdefault('AUDIT_JOBS_QUEUE_URL', 'https://sqs.us-east-1.amazonaws.com/1/audit-jobs')
os.environ.setdefault('AUDIT_WORKER_QUEUE_URL', 'https://sqs.us-east-1.amazonaws.com/1/audit-worker')
os.environ.setdefault('SCRAPING_JOBS_QUEUE_URL', 'https://sqs.us-east-1.amazonaws.com/1/scraping-jobs')
os.environ.setdefault('S3_BUCKET_NAME', 'spacecat-test')
os.environ.setdefault('S3_SCRAPER_BUCKET', 'spacecat-scraper-test')

from unittest.mock import MagicMock

import jwt
import pytest

from config import CONFIG

ORG_ID = '5f3b3626-029c-476e-924b-0c1bba2e871f'
OTHER_ORG_ID = '9033554c-de8a-44ac-a356-09b51af8cc28'


def make_token(email='user@example.com', organizations=(ORG_ID,), is_admin=False, token_type='access'):
    payload = {
        'user_email': email,
        'organizations': list(organizations),
        'is_admin': is_admin,
        'type': token_type,
        'exp': datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(minutes=5),
    }
    return 'Bearer ' + jwt.encode(payload, CONFIG.security.jwt_secret, algorithm=CONFIG.security.jwt_algorithm)


@pytest.fixture
def client():
    import main
    return main.app.test_client()


@pytest.fixture
def user_headers():
    return {'Authorization': make_token()}


@pytest.fixture
def other_org_headers():
    return {'Authorization': make_token('outsider@example.com', organizations=(OTHER_ORG_ID,))}


@pytest.fixture
def admin_headers():
    return {'x-api-key': CONFIG.security.admin_api_key}


@pytest.fixture
def slack_context():
    ctx = MagicMock()
    ctx.user = 'U_ADMIN'
    ctx.files = []
    ctx.channel_id = 'C123'
    ctx.thread_ts = '1700000000.000100'
    ctx.bot_token = 'xoxb-test'
    return ctx

