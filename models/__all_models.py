from . import Posts, Users  # noqa: F401
