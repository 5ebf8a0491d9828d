"""Shorthand constructors for relationship definitions used in tests."""
from dbexplorer.models import RelationshipDef, RelationshipKind


def belongs_to(name, target, polymorphic=False):
    return RelationshipDef(name=name, kind=RelationshipKind.BELONGS_TO, target_type=target, polymorphic=polymorphic)


def has_many(name, target):
    return RelationshipDef(name=name, kind=RelationshipKind.HAS_MANY, target_type=target)


def has_one(name, target, polymorphic=False):
    return RelationshipDef(name=name, kind=RelationshipKind.HAS_ONE, target_type=target, polymorphic=polymorphic)


def through(name, *steps):
    return RelationshipDef(name=name, kind=RelationshipKind.THROUGH, target_type=steps[-1].target_type, steps=steps)


def many_to_many(name, target):
    return RelationshipDef(name=name, kind=RelationshipKind.MANY_TO_MANY, target_type=target)
