import itertools
from datetime import date, timedelta

import pytest

from app import create_app
from models import db as _db
from models.monastery import Monastery
from models.slot import DonationSlot
from models.user import User
from security.password import hash_password
from services import create_booking
from utils.roles import DONOR, MONASTERY_ADMIN, SUPER_ADMIN
from utils.seed import get_or_create_role, seed_roles

PASSWORD = "secret123"
FOOD = {"food_type": "Rice and curry", "contact_phone": "+94 77 123 4567"}


@pytest.fixture
def app(tmp_path):
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite:///" + str(tmp_path / "dhaana-test.db"),
        "SQLALCHEMY_ENGINE_OPTIONS": {"connect_args": {"check_same_thread": False, "timeout": 30}},
        "SEED_ROLES_ON_STARTUP": False,
        "CSRF_ENABLED": False,
        "BCRYPT_ROUNDS": 4,
        "LOG_LEVEL": "WARNING",
    })
    with app.app_context():
        _db.create_all()
        seed_roles()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    counter = itertools.count(1)

    def _make(*roles, email=None):
        n = next(counter)
        user = User(
            email=email or f"user{n}@example.com",
            password_hash=hash_password(PASSWORD, rounds=4),
            full_name=f"User {n}",
        )
        for name in roles or (DONOR,):
            user.roles.append(get_or_create_role(name))
        _db.session.add(user)
        _db.session.commit()
        return user

    return _make


@pytest.fixture
def donor(make_user):
    return make_user(DONOR)


@pytest.fixture
def other_donor(make_user):
    return make_user(DONOR)


@pytest.fixture
def monastery_admin(make_user):
    return make_user(DONOR, MONASTERY_ADMIN)


@pytest.fixture
def other_admin(make_user):
    return make_user(DONOR, MONASTERY_ADMIN)


@pytest.fixture
def super_admin(make_user):
    return make_user(SUPER_ADMIN)


@pytest.fixture
def make_monastery(app):
    def _make(admin, capacity=None, name="Sri Maha Viharaya"):
        monastery = Monastery(
            name=name,
            address="12 Temple Road, Kandy",
            admin_id=admin.id,
            capacity=capacity,
        )
        _db.session.add(monastery)
        _db.session.commit()
        return monastery

    return _make


@pytest.fixture
def monastery(make_monastery, monastery_admin):
    return make_monastery(monastery_admin)


@pytest.fixture
def make_slot(app, monastery):
    def _make(capacity=10, days_ahead=3, time_slot="lunch", owner=None):
        slot = DonationSlot(
            monastery_id=(owner or monastery).id,
            date=date.today() + timedelta(days=days_ahead),
            time_slot=time_slot,
            capacity=capacity,
        )
        _db.session.add(slot)
        _db.session.commit()
        return slot

    return _make


@pytest.fixture
def slot(make_slot):
    return make_slot(capacity=10)


@pytest.fixture
def make_booking(app):
    def _make(slot, donor, servings=2):
        result = create_booking(slot.id, donor.id, dict(FOOD), servings)
        assert result.success, result.error
        return result.booking

    return _make


@pytest.fixture
def login(client):
    def _login(user):
        resp = client.post("/auth/login", json={"email": user.email, "password": PASSWORD})
        assert resp.status_code == 200, resp.get_json()
        return resp

    return _login
