from django.test import TestCase

from .factories import Factory


class BaseAppTestCase(TestCase):
    default_password = "pass1234"

    def make_user(self, *, is_staff=True, **kwargs):
        return Factory.user(is_staff=is_staff, password=self.default_password, **kwargs)

    def login_as(self, user):
        self.client.force_login(user)
        return user

    def login_staff(self):
        return self.login_as(self.make_user())
