import uuid
from unittest import mock
from urllib.parse import urlsplit

import pytest
import requests

from invoicing import create_app
from invoicing.client.session import ApiClient, AuthSession
from invoicing.database import create_all, drop_all, get_session
from invoicing.models import AppUser, Company, Item
from invoicing.services.auth_service import issue_token

API_BASE_URL = 'http://invoicing.test/api'
PASSWORD = 'password123'


def _persist(session, obj):
    """Commit ``obj`` and detach it with its attributes loaded."""
    session.add(obj)
    session.commit()
    session.refresh(obj)
    session.expunge(obj)
    return obj


@pytest.fixture(scope='function')
def app():
    """Fresh application and in-memory database per test."""
    app = create_app('config.TestingConfig')
    with app.app_context():
        create_all()
        yield app
        get_session().remove()
        drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Database session shared with the request handlers."""
    session = get_session()
    yield session
    session.rollback()


@pytest.fixture(scope='function')
def company(session):
    return _persist(session, Company(name='Acme Traders', currency_symbol='₹'))


@pytest.fixture(scope='function')
def other_company(session):
    """Second tenant for isolation tests."""
    return _persist(session, Company(name='Other Traders', currency_symbol='$'))


def _make_user(session, company, first_name):
    user = AppUser(
        company_id=company.id,
        email=f'{first_name.lower()}-{uuid.uuid4().hex[:8]}@test.com',
        first_name=first_name,
        last_name='Tester',
        active=True
    )
    user.set_password(PASSWORD)
    return _persist(session, user)


@pytest.fixture(scope='function')
def user(session, company):
    return _make_user(session, company, 'Asha')


@pytest.fixture(scope='function')
def other_user(session, other_company):
    return _make_user(session, other_company, 'Omar')


@pytest.fixture(scope='function')
def auth_headers(app, user):
    return {'Authorization': f'Bearer {issue_token(user)}'}


@pytest.fixture(scope='function')
def other_auth_headers(app, other_user):
    return {'Authorization': f'Bearer {issue_token(other_user)}'}


@pytest.fixture(scope='function')
def item(session, company):
    """The catalog item used by the worked example: Widget, rate 100, 10% off."""
    widget = Item(
        company_id=company.id,
        item_name='Widget',
        description='Standard widget',
        sales_rate=100,
        discount_pct=10
    )
    widget.touch('Asha Tester')
    return _persist(session, widget)


@pytest.fixture(scope='function')
def second_item(session, company):
    gadget = Item(
        company_id=company.id,
        item_name='Gadget',
        description='Pocket gadget',
        sales_rate=40,
        discount_pct=0
    )
    gadget.touch('Asha Tester')
    return _persist(session, gadget)


@pytest.fixture(scope='function')
def storage():
    """Image store double patched where the routes look it up."""
    service = mock.MagicMock()
    service.upload_image.side_effect = lambda kind, owner_id, file: f'{kind}/{owner_id}/{file.filename}'
    service.get_public_url.side_effect = lambda key: f'http://images.test/uploads/{key}'
    with mock.patch('invoicing.blueprints.uploads.get_storage_service', return_value=service), \
            mock.patch('invoicing.blueprints.items.get_storage_service', return_value=service), \
            mock.patch('invoicing.blueprints.auth.get_storage_service', return_value=service):
        yield service


def _route_to_flask(client):
    """``requests.Session.request`` replacement that calls the Flask test client."""

    def request(method, url, headers=None, json=None, params=None, data=None, files=None, timeout=None):
        kwargs = {'headers': headers or {}, 'query_string': params}
        if files:
            form = {key: str(value) for key, value in (data or {}).items()}
            for name, (filename, fileobj, content_type) in files.items():
                form[name] = (fileobj, filename, content_type)
            kwargs['data'] = form
            kwargs['content_type'] = 'multipart/form-data'
        elif json is not None:
            kwargs['json'] = json

        flask_response = client.open(urlsplit(url).path, method=method, **kwargs)

        response = requests.Response()
        response.status_code = flask_response.status_code
        response._content = flask_response.get_data()
        response.headers.update(dict(flask_response.headers))
        response.encoding = 'utf-8'
        response.url = url
        return response

    return request


@pytest.fixture(scope='function')
def transport(client):
    """Mocked ``requests.Session`` whose calls land in the test app."""
    http = mock.MagicMock(spec=requests.Session)
    http.request.side_effect = _route_to_flask(client)
    return http


@pytest.fixture(scope='function')
def api(transport):
    """Anonymous API client."""
    return ApiClient(API_BASE_URL, AuthSession(), timeout=5, http=transport)


@pytest.fixture(scope='function')
def signed_in_api(api, user):
    api.login(user.email, PASSWORD)
    return api
