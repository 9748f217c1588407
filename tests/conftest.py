import pytest

from app import create_app
from config import TestingConfig
from models import db
from models.user import User, ADMIN, STUDENT
from utils.auth_utils import Actor, generate_token
from information import services
from information.models import EDIT_WITH_PROOF


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def _make_user(email, role, name):
    user = User(email=email, name=name, role=role)
    user.set_password("password123")
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def admin_user(app):
    return _make_user("admin@mca.edu", ADMIN, "Admin")


@pytest.fixture
def student_user(app):
    return _make_user("student@mca.edu", STUDENT, "Student One")


@pytest.fixture
def admin(admin_user):
    return Actor.from_user(admin_user)


@pytest.fixture
def student(student_user):
    return Actor.from_user(student_user)


@pytest.fixture
def admin_headers(admin_user):
    token = generate_token(admin_user.id, admin_user.email, admin_user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def student_headers(student_user):
    token = generate_token(student_user.id, student_user.email, student_user.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_table(admin):
    def factory(permission_mode=EDIT_WITH_PROOF, title="Marksheet", columns=None, rows=None, **kwargs):
        return services.create_information(
            admin,
            title=title,
            columns=columns or ["Name", "Marks"],
            rows=rows or [{"Name": "A", "Marks": "80"}],
            permission_mode=permission_mode,
            **kwargs,
        )
    return factory
