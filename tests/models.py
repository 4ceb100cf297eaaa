from __future__ import annotations

from sqla_entitymeta import EntitySchema


author_schema = EntitySchema({
    "name": "Author",
    "columns": {
        "id": {"type": "int", "primary": True, "generated": True},
        "name": {"type": "varchar", "length": 100},
        "profile_ref": {"type": "int", "nullable": True},
    },
    "relations": {
        "posts": {"type": "one-to-many", "target": "Post", "inverse_side": "author"},
        "bio": {
            "type": "one-to-one",
            "target": "Bio",
            "inverse_side": "author",
            "eager": True,
            "join_column": True,
        },
        "profile": {
            "type": "one-to-one",
            "target": "Profile",
            "inverse_side": "author",
            "join_column": {"name": "profile_ref"},
        },
    },
})

bio_schema = EntitySchema({
    "name": "Bio",
    "columns": {
        "id": {"type": "int", "primary": True, "generated": True},
        "text": {"type": "text", "nullable": True},
    },
    "relations": {
        "author": {"type": "one-to-one", "target": "Author", "inverse_side": "bio"},
    },
})

profile_schema = EntitySchema({
    "name": "Profile",
    "columns": {
        "id": {"type": "int", "primary": True, "generated": True},
        "avatar_url": {"type": "varchar", "length": 255, "nullable": True},
    },
    "relations": {
        "author": {"type": "one-to-one", "target": "Author", "inverse_side": "profile"},
    },
})

post_schema = EntitySchema({
    "name": "Post",
    "columns": {
        "id": {"type": "int", "primary": True, "generated": True},
        "title": {"type": "varchar", "length": 200},
        "views": {"type": "int", "default": 0},
        "created_at": {"create_date": True},
    },
    "relations": {
        "author": {"type": "many-to-one", "target": "Author", "inverse_side": "posts", "eager": True},
        "categories": {
            "type": "many-to-many",
            "target": "Category",
            "inverse_side": "posts",
            "join_table": True,
        },
        "comments": {"type": "one-to-many", "target": "Comment", "inverse_side": "post"},
    },
    "indices": [{"columns": ["title"]}],
})

category_schema = EntitySchema({
    "name": "Category",
    "columns": {
        "id": {"type": "int", "primary": True, "generated": True},
        "name": {"type": "varchar", "length": 50},
    },
    "relations": {
        "posts": {"type": "many-to-many", "target": "Post", "inverse_side": "categories"},
        "children": {"type": "many-to-many", "target": "Category", "join_table": True},
    },
    "uniques": [{"columns": ["name"]}],
})

comment_schema = EntitySchema({
    "name": "Comment",
    "columns": {
        "id": {"type": "int", "primary": True, "generated": True},
        "text": {"type": "text"},
    },
    "relations": {
        "post": {"type": "many-to-one", "target": "Post", "inverse_side": "comments", "on_delete": "CASCADE"},
    },
})

SCHEMAS = (
    author_schema,
    bio_schema,
    profile_schema,
    post_schema,
    category_schema,
    comment_schema,
)
