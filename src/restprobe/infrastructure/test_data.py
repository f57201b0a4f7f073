"""Random test data for user API checks"""

import itertools
import random
import string
import time
from typing import List, Optional

from restprobe.domain.models.user import User

FIRST_NAMES = ["Ada", "Grace", "Alan", "Linus", "Margaret", "Dennis", "Barbara", "Ken", "Frances", "Edsger"]
LAST_NAMES = ["Lovelace", "Hopper", "Turing", "Torvalds", "Hamilton", "Ritchie", "Liskov", "Thompson", "Allen", "Dijkstra"]
DOMAINS = ["example.com", "example.org", "test.example.net"]

INVALID_EMAILS = [
    "invalid-email",
    "test@",
    "@example.com",
    "test..test@example.com",
    "test@.com",
    "test@com",
    "",
]


class TestDataGenerator:
    """Generates realistic user payloads.

    Pass a seeded random.Random for reproducible data.
    """

    __test__ = False  # Not a pytest test class

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()
        self._sequence = itertools.count(1)

    def unique_email(self, first_name: Optional[str] = None, last_name: Optional[str] = None) -> str:
        first_name = first_name or self.rng.choice(FIRST_NAMES)
        last_name = last_name or self.rng.choice(LAST_NAMES)
        stamp = str(time.time_ns())[-6:]
        suffix = "".join(self.rng.choices(string.digits, k=3)) + str(next(self._sequence))
        domain = self.rng.choice(DOMAINS)
        return f"{first_name.lower()}.{last_name.lower()}.{stamp}{suffix}@{domain}"

    def secure_password(self, min_length: int = 8, max_length: int = 16) -> str:
        length = self.rng.randint(min_length, max_length)
        # At least one of each class
        chars = [
            self.rng.choice(string.ascii_uppercase),
            self.rng.choice(string.ascii_lowercase),
            self.rng.choice(string.digits),
            self.rng.choice("!@#$%^&*"),
        ]
        pool = string.ascii_letters + string.digits + "!@#$%^&*"
        chars += self.rng.choices(pool, k=length - len(chars))
        self.rng.shuffle(chars)
        return "".join(chars)

    def phone_number(self) -> str:
        return f"+1-{self.rng.randint(200, 999)}-{self.rng.randint(200, 999)}-{self.rng.randint(0, 9999):04d}"

    def random_user(self) -> User:
        first_name = self.rng.choice(FIRST_NAMES)
        last_name = self.rng.choice(LAST_NAMES)
        email = self.unique_email(first_name, last_name)
        return User(
            email=email,
            first_name=first_name,
            last_name=last_name,
            username=email,
            password=self.secure_password(),
            phone=self.phone_number(),
            avatar=f"https://avatars.example.com/{self.rng.randint(1, 10000)}.png",
            status="active",
            role="user",
            is_active=True,
            email_verified=self.rng.random() < 0.5,
        )

    def random_admin_user(self) -> User:
        return self.random_user().model_copy(update={"role": "admin", "email_verified": True})

    def random_users(self, count: int) -> List[User]:
        return [self.random_user() for _ in range(count)]

    def user_with_role(self, role: str) -> User:
        user = self.random_user().model_copy(update={"role": role})
        if role in ("admin", "moderator"):
            user = user.model_copy(update={"email_verified": True})
        return user

    def user_for_update(self) -> User:
        """Partial payload for PATCH requests"""
        return User(
            first_name=self.rng.choice(FIRST_NAMES),
            last_name=self.rng.choice(LAST_NAMES),
            phone=self.phone_number(),
        )

    def invalid_email(self) -> str:
        return self.rng.choice(INVALID_EMAILS)

    def invalid_user(self) -> User:
        """User payload that a validating API must reject"""
        return User(
            email=self.invalid_email(),
            first_name="",
            last_name="",
            password="123",
            phone="invalid-phone",
        )
