"""Create the explore feed tables and optionally load demo content."""
from __future__ import annotations

import argparse
from datetime import timedelta

from explore_feed.db.session import create_tables, drop_tables, session_scope
from explore_feed.db.time import utcnow
from explore_feed.models import Post, PostCategory, Profile

_DEMO_PROFILES = [
    ("demo-alice", "alice_tech", "Alice Johnson"),
    ("demo-bob", "bob_creates", "Bob Smith"),
]

_DEMO_POSTS = [
    ("demo-alice", "Just launched my new AI project!", ["technology", "innovation"], [], 42, 8, 12, 3),
    ("demo-bob", "Check out my latest digital art piece!", ["art"], ["art-preview.png"], 128, 16, 24, 10),
    ("demo-alice", "Climate data visualised in one chart.", ["science", "climate"], [], 17, 4, 2, 30),
]


def seed_demo_content() -> int:
    """Insert demo profiles and posts; return the number of posts created."""
    now = utcnow()
    with session_scope() as db:
        for profile_id, username, full_name in _DEMO_PROFILES:
            if db.get(Profile, profile_id) is None:
                db.add(Profile(id=profile_id, username=username, full_name=full_name))
        for author, content, tags, media, likes, comments, reposts, hours_ago in _DEMO_POSTS:
            db.add(
                Post(
                    user_id=author,
                    content=content,
                    media_urls=media,
                    likes_count=likes,
                    comments_count=comments,
                    reposts_count=reposts,
                    created_at=now - timedelta(hours=hours_ago),
                    categories=[PostCategory(category=tag) for tag in tags],
                )
            )
    return len(_DEMO_POSTS)


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--seed", action="store_true", help="Insert demo profiles and posts")
    parser.add_argument("--reset", action="store_true", help="Drop existing tables first")
    args = parser.parse_args()

    if args.reset:
        drop_tables()
        print("Dropped existing tables.")
    create_tables()
    print("Database initialized.")
    if args.seed:
        count = seed_demo_content()
        print(f"Seeded {count} demo posts.")


if __name__ == "__main__":
    main()
