# Test cases for app module
from unittest.mock import patch


def test_health_check(client):
    """Test the health check endpoint."""
    response = client.get('/health')
    assert response.status_code == 200
    assert response.json['status'] == 'healthy'


def test_detailed_health_check(client):
    with patch('app.db') as mock_db:
        mock_db.command.return_value = {"ok": 1}
        response = client.get('/health/detailed')
    assert response.status_code == 200
    assert response.json['components']['mongodb']['status'] == 'healthy'
    mock_db.command.assert_called_once_with('ping')


def test_detailed_health_check_reports_mongo_down(client):
    with patch('app.db') as mock_db:
        mock_db.command.side_effect = RuntimeError("connection refused")
        response = client.get('/health/detailed')
    assert response.status_code == 503
    assert response.json['status'] == 'unhealthy'


def test_unknown_route_is_json_404(client):
    response = client.get('/no-such-page')
    assert response.status_code == 404
    assert response.json == {"success": False, "error": "Not Found"}


def test_protected_route_without_token(client):
    response = client.get('/user/profile')
    assert response.status_code == 401
    assert response.json['error'] == 'Authentication required'


def test_garbage_token_is_unauthenticated(client):
    response = client.get('/user/profile', headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


def test_security_headers(client):
    response = client.get('/health')
    assert response.headers['X-Content-Type-Options'] == 'nosniff'
