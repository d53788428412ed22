import pytest

from chat_api.utils import channel_id_for_user, user_id_from_email


@pytest.mark.parametrize("email,expected", [
    ("a.b+c@x.com", "a_b_c_x_com"),
    ("ann@x.com", "ann_x_com"),
    ("first-last_1@mail.co.uk", "first-last_1_mail_co_uk"),
    ("josé@x.com", "jos__x_com"),
    ("", ""),
])
def test_user_id_from_email(email, expected):
    assert user_id_from_email(email) == expected


def test_user_id_is_deterministic():
    assert user_id_from_email("Ann.Lee@X.com") == user_id_from_email("Ann.Lee@X.com")


def test_user_id_keeps_case():
    assert user_id_from_email("Ann@X.com") == "Ann_X_com"


def test_channel_id_for_user():
    assert channel_id_for_user("ann_x_com") == "chat-ann_x_com"
