import pytest
from fastapi.testclient import TestClient

from playboard.server import create_app
from playboard.tests.fakes import make_controller


@pytest.fixture
def controller():
    return make_controller()


@pytest.fixture
def app_client():
    return TestClient(create_app(make_controller()))
