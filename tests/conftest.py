"""Общие фикстуры: перехват логов loguru и фейковые HTTP ответы."""

import sys
from unittest.mock import Mock

import pytest
import requests
from loguru import logger


@pytest.fixture
def log_messages():
    """Собирает записи loguru уровня WARNING и выше."""
    messages = []
    handler_id = logger.add(lambda m: messages.append(m.record), level="WARNING")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def make_response():
    def _make(status_code=200, body=None, json_error=False, text=""):
        response = Mock()
        response.status_code = status_code
        response.text = text
        if status_code >= 400:
            response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} Error")
        else:
            response.raise_for_status.return_value = None
        if json_error:
            response.json.side_effect = ValueError("not json")
        else:
            response.json.return_value = body
        return response

    return _make


@pytest.fixture
def no_sleep(monkeypatch):
    """Подменяет time.sleep в модуле клиента и возвращает список пауз."""
    sleeps = []
    monkeypatch.setattr("modules.layeredge.time.sleep", sleeps.append)
    return sleeps


@pytest.fixture
def reset_logger():
    """run() перенастраивает loguru; после теста возвращаем стандартный sink."""
    yield
    logger.remove()
    logger.add(sys.stderr)
