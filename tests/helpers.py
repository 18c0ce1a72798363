"""Test doubles shared by several test modules."""
from unittest.mock import Mock


def make_response(text="ok", status_code=200):
    response = Mock()
    response.text = text
    response.status_code = status_code
    response.raise_for_status = Mock()
    return response
