import pytest

from config import TestConfig
from wishwallet import create_app
from wishwallet.extensions import db
from wishwallet.models import User, Wishlist, WishlistItem, Goal
from wishwallet.utils import slugify


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    counter = {'n': 0}

    def _make(username=None, is_admin=False, bank=False, password='secret123'):
        counter['n'] += 1
        username = username or f'user{counter["n"]}'
        user = User(username=username, email=f'{username}@example.com', is_admin=is_admin)
        user.set_password(password)
        if bank:
            user.bank_account_number = '0123456789'
            user.bank_code = '058'
            user.bank_name = 'GTBank'
            user.account_name = username.upper()
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def owner(make_user):
    return make_user('ada', bank=True)


@pytest.fixture
def spender(make_user):
    return make_user('bola')


@pytest.fixture
def admin(make_user):
    return make_user('root', is_admin=True)


@pytest.fixture
def wishlist(owner):
    wishlist = Wishlist(user_id=owner.id, title='Birthday Bash', slug=slugify('Birthday Bash'),
                        occasion='birthday')
    db.session.add(wishlist)
    db.session.commit()
    return wishlist


@pytest.fixture
def make_item(wishlist):
    def _make(name='Headphones', price=5000, qty_total=1):
        item = WishlistItem(wishlist_id=wishlist.id, name=name,
                            unit_price_estimate=price, qty_total=qty_total, qty_claimed=0)
        db.session.add(item)
        db.session.commit()
        return item

    return _make


@pytest.fixture
def item(make_item):
    return make_item()


@pytest.fixture
def goal(wishlist):
    goal = Goal(wishlist_id=wishlist.id, title='Laptop fund', target_amount=100000)
    db.session.add(goal)
    db.session.commit()
    return goal


@pytest.fixture
def login(client):
    def _login(user, password='secret123'):
        response = client.post('/api/auth/login', json={'email': user.email, 'password': password})
        assert response.status_code == 200
        return response

    return _login
