from functools import wraps

from flask import make_response, request

from .config import getSettings, is_true


def authorise(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        auth = request.authorization
        settings = getSettings()
        security = is_true(settings["enable security"])
        username = settings["username"]
        password = settings["password"]
        if (
            not security
            or auth
            and auth.username == username
            and auth.password == password
        ):
            return f(*args, **kwargs)

        return make_response(
            "CastDeck login required",
            401,
            {"WWW-Authenticate": 'Basic realm="CastDeck"'},
        )

    return decorated
