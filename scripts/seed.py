"""Populate a development database with verified users, articles and reactions."""
import argparse
import asyncio
import random
import time
from datetime import date, datetime, timedelta, timezone

from readstack import security
from readstack.config import settings
from readstack.database import Base, Database
from readstack.models import ARTICLE_CATEGORIES, Article, User, VoteValue
from readstack.stores import article_store

# Every seeded account signs in with this password.
SEED_PASSWORD = "readstack1"


def _body(i: int, category: str) -> dict:
    return {
        "type": "doc",
        "content": [
            {"type": "heading", "content": [{"type": "text", "text": f"Notes on {category.lower()} #{i}"}]},
            {"type": "paragraph", "content": [{"type": "text", "text": f"Seeded article {i}. " * 12}]},
        ],
    }


async def seed(small: bool = False, reset: bool = False):
    num_users = 5 if small else 25
    num_articles = 40 if small else 1000

    print(f"Seeding: {num_users} users, {num_articles} articles")
    start = time.perf_counter()
    db = Database(settings.DATABASE_URL)

    if reset:
        async with db.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
    await db.create_all()

    # One hash for everyone; bcrypt is too slow to run per seeded user.
    password_hash = await security.hash_password(SEED_PASSWORD)

    async with db.session_factory() as session:
        users = []
        for i in range(num_users):
            user = User(
                email=f"reader{i:03d}@example.com",
                first_name="Reader",
                last_name=f"{i:03d}",
                phone=f"555{i:07d}",
                dob=date(1990, 1, 1) + timedelta(days=i * 97),
                password=password_hash,
                preferences=random.sample(ARTICLE_CATEGORIES, k=2),
                is_verified=True,
            )
            session.add(user)
            users.append(user)
        await session.flush()
        print(f"  Created {len(users)} users")

        articles = []
        for i in range(num_articles):
            category = random.choice(ARTICLE_CATEGORIES)
            article = Article(
                title=f"Article {i}: a look at {category.lower()}",
                content=_body(i, category),
                category=category,
                created_at=datetime.now(timezone.utc) - timedelta(minutes=random.randint(0, 60 * 24 * 90)),
                author_id=random.choice(users).id,
            )
            session.add(article)
            articles.append(article)
        await session.flush()
        print(f"  Created {len(articles)} articles")

        reactions = 0
        for article in articles:
            for user in random.sample(users, k=random.randint(0, min(5, len(users)))):
                value = VoteValue.LIKE if random.random() < 0.75 else VoteValue.DISLIKE
                await article_store.set_vote(session, article.id, user.id, value)
                reactions += 1
        print(f"  Created {reactions} likes/dislikes")

        await session.commit()

    await db.dispose()
    print(f"\nSeeding complete in {time.perf_counter() - start:.1f}s")
    print(f"  Sign in as reader000@example.com / {SEED_PASSWORD}")


def main():
    parser = argparse.ArgumentParser(description="Seed the ReadStack database")
    parser.add_argument("--small", action="store_true", help="Use a small dataset (40 articles)")
    parser.add_argument("--reset", action="store_true", help="Drop all tables before seeding")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small, reset=args.reset))


if __name__ == "__main__":
    main()
