import pytest

import api.routes as routes

@pytest.fixture
def seeded_todo(fake_db):
    return fake_db.add_row('todos', {'id': 42, 'text': "Plan vacation", 'user_id': 1})

def test_health_check(test_client):
    response = test_client.get('/api/ai-description')

    assert response.status_code == 200
    data = response.get_json()
    assert data['success'] is True
    assert data['message'] == "AI Description API is running"
    assert 'timestamp' in data

def test_description_is_stored(test_client, seeded_todo):
    response = test_client.post('/api/ai-description', json={'todoId': 42, 'description': "Pick dates first"})

    assert response.status_code == 200
    data = response.get_json()
    assert data['success'] is True
    assert data['todo']['id'] == 42
    assert data['todo']['description'] == "Pick dates first"
    assert seeded_todo['description'] == "Pick dates first"

def test_string_todo_id_is_accepted(test_client, seeded_todo):
    response = test_client.post('/api/ai-description', json={'todoId': "42", 'description': "Book flights"})

    assert response.status_code == 200
    assert seeded_todo['description'] == "Book flights"

def test_unknown_todo_returns_404(test_client):
    response = test_client.post('/api/ai-description', json={'todoId': 999, 'description': "x"})

    assert response.status_code == 404
    assert response.get_json() == {'success': False, 'error': "Todo not found"}

@pytest.mark.parametrize("body", [
    {'description': "no id"},
    {'todoId': 42},
    {'todoId': 42, 'description': ""},
    {},
])
def test_missing_fields_return_400(test_client, seeded_todo, body):
    response = test_client.post('/api/ai-description', json=body)

    assert response.status_code == 400
    assert "Missing required fields" in response.get_json()['error']
    assert seeded_todo['description'] is None

def test_non_numeric_id_returns_400(test_client):
    response = test_client.post('/api/ai-description', json={'todoId': "abc", 'description': "x"})

    assert response.status_code == 400

def test_api_key_checked_when_configured(test_client, seeded_todo, monkeypatch):
    monkeypatch.setattr(routes.settings, 'ai_description_api_key', 'secret')

    rejected = test_client.post('/api/ai-description', json={'todoId': 42, 'description': "x"})
    accepted = test_client.post('/api/ai-description', json={'todoId': 42, 'description': "x", 'apiKey': 'secret'})

    assert rejected.status_code == 401
    assert rejected.get_json()['error'] == "Invalid API key"
    assert accepted.status_code == 200

def test_store_failure_returns_500(test_client, seeded_todo, fake_db):
    fake_db.fail = "connection reset"

    response = test_client.post('/api/ai-description', json={'todoId': 42, 'description': "x"})

    assert response.status_code == 500
    data = response.get_json()
    assert data['error'] == "Failed to update todo in database"
    assert 'details' in data

@pytest.mark.parametrize("body", [[1], "todo", 42])
def test_non_object_body_returns_400(test_client, body):
    response = test_client.post('/api/ai-description', json=body)

    assert response.status_code == 400
    assert "Missing required fields" in response.get_json()['error']
