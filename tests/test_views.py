import pytest

import api.routes as routes
from api.services.chat import WELCOME_TEXT

@pytest.fixture
def logged_in(test_client):
    test_client.post('/login', data={'username': 'alice'})
    return test_client

def test_pages_redirect_to_login(test_client):
    for path in ('/', '/chat'):
        response = test_client.get(path)
        assert response.status_code == 302
        assert response.headers['Location'].endswith('/login')

def test_health(test_client):
    data = test_client.get('/health').get_json()

    assert data['status'] == 'healthy'
    assert data['ai_available'] is False
    assert data['workflow_enabled'] is False

def test_login_creates_user_and_redirects(test_client, fake_db):
    response = test_client.post('/login', data={'username': '  alice  '})

    assert response.status_code == 302
    assert response.headers['Location'].endswith('/')
    assert [u['username'] for u in fake_db.tables['users']] == ['alice']

    page = test_client.get('/')
    assert page.status_code == 200
    assert 'alice' in page.get_data(as_text=True)

def test_blank_login_is_rejected(test_client, fake_db):
    response = test_client.post('/login', data={'username': '   '})

    assert response.status_code == 400
    assert 'Please enter a username' in response.get_data(as_text=True)
    assert fake_db.tables['users'] == []

def test_login_store_failure(test_client, fake_db):
    fake_db.fail = "connection refused"

    response = test_client.post('/login', data={'username': 'alice'})

    assert response.status_code == 500
    assert 'Failed to login' in response.get_data(as_text=True)

def test_logout(logged_in):
    response = logged_in.post('/logout')

    assert response.headers['Location'].endswith('/login')
    assert logged_in.get('/').status_code == 302

def test_add_toggle_and_delete(logged_in, fake_db):
    logged_in.post('/todos', data={'text': 'Water plants', 'priority': 'on'})
    todo = fake_db.tables['todos'][0]
    assert todo['text'] == 'Water plants'
    assert todo['priority'] is True
    assert todo['description'] is None

    logged_in.post(f"/todos/{todo['id']}/toggle")
    assert todo['completed'] is True

    page = logged_in.get('/').get_data(as_text=True)
    assert 'Completed (1)' in page

    logged_in.post(f"/todos/{todo['id']}/delete")
    assert fake_db.tables['todos'] == []

def test_blank_todo_is_not_saved(logged_in, fake_db):
    logged_in.post('/todos', data={'text': '   '})

    assert fake_db.tables['todos'] == []
    assert 'Todo text is required' in logged_in.get('/').get_data(as_text=True)

def test_edit_replaces_fields(logged_in, fake_db):
    logged_in.post('/todos', data={'text': 'Water plants', 'description': 'Balcony', 'priority': 'on'})
    todo = fake_db.tables['todos'][0]

    form = logged_in.get(f"/todos/{todo['id']}/edit")
    assert form.status_code == 200

    logged_in.post(f"/todos/{todo['id']}/edit", data={'text': 'Water all plants'})

    assert todo['text'] == 'Water all plants'
    assert todo['description'] is None
    assert todo['priority'] is False

def test_edit_unknown_todo(logged_in):
    assert logged_in.get('/todos/999/edit').status_code == 404

def test_chat_suggestion_creates_todos(logged_in, fake_db):
    page = logged_in.get('/chat').get_data(as_text=True)
    assert "AI Todo Assistant" in page

    logged_in.post('/chat/messages', data={'message': 'go to the gym'})
    page = logged_in.get('/chat').get_data(as_text=True)
    assert 'Fitness: go to the gym' in page

    response = logged_in.post('/chat/replies', data={'reply': 'Create all these todos'})

    assert response.headers['Location'].endswith('/')
    assert [t['text'] for t in fake_db.tables['todos']] == ['Fitness: go to the gym']
    assert fake_db.tables['todos'][0]['priority'] is True
    assert 'Created 1 todo(s)' in logged_in.get('/').get_data(as_text=True)

def test_chat_draft_prefills_form(logged_in, fake_db):
    logged_in.post('/chat/messages', data={'message': 'buy groceries'})

    response = logged_in.post('/chat/replies', data={'reply': 'Use this suggestion'})

    assert response.headers['Location'].endswith('/')
    assert fake_db.tables['todos'] == []
    assert 'value="Shopping: buy groceries"' in logged_in.get('/').get_data(as_text=True)

def test_chat_clear(logged_in):
    logged_in.post('/chat/messages', data={'message': 'buy groceries'})
    logged_in.post('/chat/clear')

    with logged_in.session_transaction() as session:
        store = routes.ClientStore(session)
        messages = routes.chat_service.load_transcript(store)

    assert len(messages) == 1
    assert messages[0].text == WELCOME_TEXT

def test_repeated_complete_submit_keeps_todo_done(logged_in, fake_db):
    logged_in.post('/todos', data={'text': 'Water plants'})
    todo = fake_db.tables['todos'][0]

    logged_in.post(f"/todos/{todo['id']}/toggle", data={'completed': 'true'})
    logged_in.post(f"/todos/{todo['id']}/toggle", data={'completed': 'true'})
    assert todo['completed'] is True

    logged_in.post(f"/todos/{todo['id']}/toggle", data={'completed': 'false'})
    assert todo['completed'] is False

def test_page_posts_target_state(logged_in, fake_db):
    logged_in.post('/todos', data={'text': 'Water plants'})

    page = logged_in.get('/').get_data(as_text=True)

    assert 'name="completed" value="true"' in page
