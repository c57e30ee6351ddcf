from datetime import datetime, timedelta, timezone

from app.database import SessionLocal, engine, Base
from app.identifiers import source_url
from app.models import Post, Comment
from app.worker.media_resolver import MediaResolver

# Create tables
Base.metadata.create_all(bind=engine)

db = SessionLocal()

# Clear existing data
db.query(Comment).delete()
db.query(Post).delete()

resolver = MediaResolver()
now = datetime.now(timezone.utc)

shared = [
    ("22460adb-aa2b-421f-8b7a-ba3cba8703af", "neon koi swimming through a rainy alley", "demo_client_a", False),
    ("caccd806-fa48-4c66-9882-deb292e34d77", "slow dolly zoom on a paper lantern festival", "demo_client_b", False),
    ("cbe61ae4-d8ec-407f-b838-84944685ce38", "retro anime opening, sunset over the harbour", None, True),
]

posts = []
for i, (identifier, prompt, author_ref, nsfw) in enumerate(shared):
    posts.append(Post(
        id=identifier,
        url=source_url(identifier),
        prompt=prompt,
        author_ref=author_ref,
        nsfw=nsfw,
        site_name="Grok",
        title="Grok Creation",
        created_at=now - timedelta(hours=i),
        **resolver.media_refs(identifier),
    ))

# A legacy row still keyed by a surrogate id, for trying the migration
legacy_id = "7b0c3f52-legacy"
legacy_identifier = "0f3d9a7e-5c1b-4e8a-9d2f-6a7b8c9d0e1f"
posts.append(Post(
    id=legacy_id,
    url=source_url(legacy_identifier),
    prompt="legacy submission from before stable ids",
    created_at=now - timedelta(days=3),
    comment_count=2,
    last_comment_at=now - timedelta(days=2),
    **resolver.media_refs(legacy_identifier),
))

comments = [
    Comment(post_id=posts[0].id, content="this loop is perfect", author_ref="demo_client_b",
            created_at=now - timedelta(minutes=30)),
    Comment(post_id=legacy_id, content="first!", author_ref="demo_client_a",
            created_at=now - timedelta(days=2, hours=1)),
    Comment(post_id=legacy_id, content="what settings did you use?", author_ref="demo_client_b",
            created_at=now - timedelta(days=2)),
]
posts[0].comment_count = 1
posts[0].last_comment_at = comments[0].created_at

db.add_all(posts)
db.flush()
db.add_all(comments)
db.commit()

print("Database seeded successfully!")
print(f"  - {len(posts)} posts ({len(posts) - len(shared)} awaiting migration)")
print(f"  - {len(comments)} comments")

db.close()
