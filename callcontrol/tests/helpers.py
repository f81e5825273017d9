import json
from unittest.mock import MagicMock

from callcontrol.core.security import create_access_token


def auth_headers(user):
    token = create_access_token(user.username, user.org_id, user.role)
    return {"Authorization": f"Bearer {token}"}


def make_response(status_code=200, json_data=None, text=None, content=b"", headers=None):
    """A stand-in for ``requests.Response`` with just what the clients read."""
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.content = content
    response.headers = headers or {}
    if json_data is not None:
        response.json.return_value = json_data
        response.text = text if text is not None else json.dumps(json_data)
    else:
        response.json.side_effect = ValueError("No JSON object could be decoded")
        response.text = text or ""
    return response
