"""Entity schemas used by the examples: a small blog."""

from __future__ import annotations

from sqla_entitymeta import EntitySchema


user = EntitySchema({
    "name": "User",
    "table_name": "users",
    "columns": {
        "id": {"type": "int", "primary": True, "generated": True},
        "name": {"type": "varchar", "length": 100},
        "active": {"type": "bool", "default": True},
    },
    "relations": {
        "posts": {"type": "one-to-many", "target": "Post", "inverse_side": "author"},
        "roles": {"type": "many-to-many", "target": "Role", "inverse_side": "users", "join_table": True},
    },
})

role = EntitySchema({
    "name": "Role",
    "columns": {
        "id": {"type": "int", "primary": True, "generated": True},
        "name": {"type": "varchar", "length": 50},
        "level": {"type": "int"},
    },
    "relations": {
        "users": {"type": "many-to-many", "target": "User", "inverse_side": "roles"},
    },
    "uniques": [{"columns": ["name"]}],
})

post = EntitySchema({
    "name": "Post",
    "columns": {
        "id": {"type": "int", "primary": True, "generated": True},
        "title": {"type": "varchar", "length": 200},
        "created_at": {"create_date": True},
    },
    "relations": {
        "author": {"type": "many-to-one", "target": "User", "inverse_side": "posts", "eager": True},
        "comments": {"type": "one-to-many", "target": "Comment", "inverse_side": "post"},
    },
})

comment = EntitySchema({
    "name": "Comment",
    "columns": {
        "id": {"type": "int", "primary": True, "generated": True},
        "text": {"type": "text"},
    },
    "relations": {
        "post": {"type": "many-to-one", "target": "Post", "inverse_side": "comments", "on_delete": "CASCADE"},
    },
})

SCHEMAS = (user, role, post, comment)
