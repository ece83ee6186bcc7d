"""Factory Boy definition for :class:`authcore.models.user.User`."""

from __future__ import annotations

import factory
from werkzeug.security import generate_password_hash

from authcore.models.user import User
from tests.factories import BaseFactory, SQLAlchemySession

DEFAULT_PASSWORD = "Passw0rd!"


class UserFactory(BaseFactory):
    """
    Build persisted :class:`authcore.models.user.User` instances.

    Notes
    -----
    - ``id`` is a client-generated UUID string.
    - Hashing uses a low iteration count to keep the suite fast.
    """

    class Meta:
        model = User

    id = factory.Faker("uuid4")
    email = factory.Sequence(lambda n: f"user{n}@example.com")
    username = factory.Sequence(lambda n: f"user{n}")
    full_name = factory.Faker("name")
    role = "user"
    is_active = True
    password_hash = factory.LazyFunction(lambda: "")  # set via postgen

    @factory.post_generation
    def password(obj, create, extracted, **kwargs):
        """Hash the given (or default) password; the factory commits afterwards."""
        obj.password_hash = generate_password_hash(
            extracted or DEFAULT_PASSWORD, method="pbkdf2:sha256:1000"
        )
        if create:
            SQLAlchemySession.get().commit()
