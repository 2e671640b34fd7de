class NotFoundError(ValueError):
    """A referenced row does not exist; routers answer 404 instead of 400."""
