import pytest

from app import create_app
from config import Config
from models import db
from models.resource import Resource
from models.user import Role, User


class SuiteConfig(Config):
    TESTING = True
    CREATE_TABLES_ON_STARTUP = True
    LOG_LEVEL = "DEBUG"


@pytest.fixture()
def app(tmp_path):
    class _Config(SuiteConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'manege-test.db'}"

    app = create_app(_Config)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def app_ctx(app):
    with app.app_context():
        yield app


@pytest.fixture()
def make_user(app):
    def _make(name="Anna de Vries", email=None, admin=False, active=True):
        with app.app_context():
            role_names = ["MEMBER", "ADMIN"] if admin else ["MEMBER"]
            user = User(
                email=email or name.lower().replace(" ", ".") + "@example.nl",
                name=name,
                is_active=active,
            )
            user.roles = Role.query.filter(Role.name.in_(role_names)).all()
            db.session.add(user)
            db.session.commit()
            return user.id
    return _make


@pytest.fixture()
def member(make_user):
    return make_user("Anna de Vries")


@pytest.fixture()
def other_member(make_user):
    return make_user("Joost Bakker")


@pytest.fixture()
def admin(make_user):
    return make_user("Stalbeheer", admin=True)


@pytest.fixture()
def hall_id(app):
    with app.app_context():
        return Resource.query.filter_by(slug="rijhal-binnen").one().id


@pytest.fixture()
def auth():
    def _headers(user_id):
        return {"X-User-Id": str(user_id)}
    return _headers
