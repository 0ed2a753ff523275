# tests/conftest.py
import pytest
import os
import sys

# Добавляем путь к корневой директории проекта
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

TEST_OPERATOR_ID = 6569201830


@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch):
    """Настройка тестового окружения для всех тестов"""
    monkeypatch.setenv('TELEGRAM_BOT_TOKEN', '123456:TEST-TOKEN')
    monkeypatch.setenv('OPERATOR_ID', str(TEST_OPERATOR_ID))
    monkeypatch.setenv('ENABLE_METRICS', 'false')
    monkeypatch.setenv('ENABLE_TRACING', 'false')
    monkeypatch.setenv('LOG_LEVEL', 'ERROR')
    monkeypatch.setenv('LOG_FILE', '')

    yield
