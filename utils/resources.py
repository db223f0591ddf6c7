from models import db
from models.resource import Resource
from scheduling.errors import ResourceInactive, ResourceNotFound


def find_resource(key):
    """Look a resource up by numeric id or by slug."""
    if key is None:
        return None
    if isinstance(key, int):
        return db.session.get(Resource, key)
    text = str(key).strip()
    if not text:
        return None
    if text.isdigit():
        return db.session.get(Resource, int(text))
    return Resource.query.filter_by(slug=text).first()


def get_bookable_resource(key):
    resource = find_resource(key)
    if resource is None:
        raise ResourceNotFound(key)
    if not resource.is_active:
        raise ResourceInactive(key)
    return resource
