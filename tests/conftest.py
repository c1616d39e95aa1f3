import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from types import SimpleNamespace
import pytest

# Add project root to Python path
project_root = str(Path(__file__).parent.parent)
sys.path.append(project_root)

# Settings are read when api.routes is imported
os.environ['SUPABASE_URL'] = 'https://test-project.supabase.co'
os.environ['SUPABASE_KEY'] = 'test-key'
os.environ['OPENAI_API_KEY'] = ''
os.environ['WORKFLOW_WEBHOOK_URL'] = ''
os.environ['AI_DESCRIPTION_API_KEY'] = ''
os.environ['WHATSAPP_VERIFY_TOKEN'] = 'test-verify-token'
os.environ['TWILIO_ACCOUNT_SID'] = ''
os.environ['TWILIO_AUTH_TOKEN'] = ''
os.environ['TWILIO_WHATSAPP_NUMBER'] = ''
os.environ['SECRET_KEY'] = 'test-secret'

TABLE_DEFAULTS = {
    'users': {},
    'todos': {'description': None, 'priority': False, 'completed': False},
}

class FakeQuery:
    """In-memory stand-in for the postgrest query builder calls the app makes."""

    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.action = 'select'
        self.payload = None
        self.filters = []
        self.order_by = None
        self.limit_count = None

    def select(self, *columns):
        self.action = 'select'
        return self

    def insert(self, data):
        self.action = 'insert'
        self.payload = data
        return self

    def update(self, data):
        self.action = 'update'
        self.payload = data
        return self

    def delete(self):
        self.action = 'delete'
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, count):
        self.limit_count = count
        return self

    def execute(self):
        if self.db.fail:
            raise Exception(self.db.fail)

        rows = self.db.tables[self.table]
        if self.action == 'insert':
            payload = self.payload if isinstance(self.payload, list) else [self.payload]
            inserted = [self.db.add_row(self.table, data) for data in payload]
            return SimpleNamespace(data=[dict(row) for row in inserted])

        matched = [row for row in rows if all(row.get(col) == value for col, value in self.filters)]

        if self.action == 'select':
            if self.order_by:
                column, desc = self.order_by
                matched = sorted(matched, key=lambda row: (row.get(column) or '', row['id']), reverse=desc)
            if self.limit_count is not None:
                matched = matched[:self.limit_count]
        elif self.action == 'update':
            for row in matched:
                row.update(self.payload)
        elif self.action == 'delete':
            self.db.tables[self.table] = [row for row in rows if row not in matched]

        return SimpleNamespace(data=[dict(row) for row in matched])

class FakeSupabase:
    def __init__(self):
        self.reset()

    def reset(self):
        self.tables = {'users': [], 'todos': []}
        self.next_ids = {'users': 1, 'todos': 1}
        self.fail = None

    def table(self, name):
        return FakeQuery(self, name)

    def add_row(self, table, data):
        if table == 'users' and any(u['username'] == data.get('username') for u in self.tables['users']):
            raise Exception('duplicate key value violates unique constraint "users_username_key"')

        now = datetime.now(timezone.utc).isoformat()
        row = {**TABLE_DEFAULTS[table], 'created_at': now, **data}
        if table == 'todos':
            row.setdefault('updated_at', now)
        if 'id' not in row:
            row['id'] = self.next_ids[table]
        self.next_ids[table] = max(self.next_ids[table], row['id']) + 1
        self.tables[table].append(row)
        return row

# Mock Supabase before importing app
import supabase
_fake_supabase = FakeSupabase()

def mock_create_client(*args, **kwargs):
    return _fake_supabase

supabase.create_client = mock_create_client

# Now we can safely import the app
from api.routes import app
from api.services.client_store import ClientStore
from api.services.storage import StorageService
from api.services.todos import TodoService
from api.services.users import UserService

@pytest.fixture(autouse=True)
def fake_db():
    _fake_supabase.reset()
    yield _fake_supabase
    _fake_supabase.reset()

@pytest.fixture
def test_client():
    app.config['TESTING'] = True
    return app.test_client()

@pytest.fixture
def storage_service(fake_db):
    return StorageService(supabase_client=fake_db)

@pytest.fixture
def todo_service(storage_service):
    return TodoService(storage_service=storage_service)

@pytest.fixture
def user_service(storage_service):
    return UserService(storage_service=storage_service)

@pytest.fixture
def user(user_service):
    return user_service.login_user('alice')

@pytest.fixture
def store():
    return ClientStore({})
