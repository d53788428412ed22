"""Utility functions for the chat API.

Identity derivation shared by the handlers and the chat directory mirror.
"""

import re

_NON_ID_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


def user_id_from_email(email: str) -> str:
    """Derive the user id from an email address.

    Every character outside ``[A-Za-z0-9_-]`` becomes ``_``, so
    ``"a.b+c@x.com"`` maps to ``"a_b_c_x_com"``. The result is both the
    database key and the chat directory identity.
    """
    return _NON_ID_CHARS.sub("_", email)


def channel_id_for_user(user_id: str) -> str:
    """Name of the mirror channel holding a user's AI replies."""
    return f"chat-{user_id}"
