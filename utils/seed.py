from flask import current_app

from models import db
from models.resource import Resource
from models.user import Role

DEFAULT_ROLES = ["MEMBER", "ADMIN"]

def seed_roles():
    existing = {r.name for r in Role.query.all()}
    for name in DEFAULT_ROLES:
        if name not in existing:
            db.session.add(Role(name=name))
    db.session.commit()

def seed_default_resource():
    slug = current_app.config.get("DEFAULT_RESOURCE_SLUG")
    if not slug:
        return None
    resource = Resource.query.filter_by(slug=slug).first()
    if resource is None:
        resource = Resource(
            slug=slug,
            name=current_app.config.get("DEFAULT_RESOURCE_NAME") or slug,
            is_active=True,
        )
        db.session.add(resource)
        db.session.commit()
    return resource
