"""Database seeder for local comment data."""
import asyncio
import argparse
import random
import time

from bizcomment.database import engine, async_session, Base
from bizcomment.models import Comment
from bizcomment.schemas import Biz
from bizcomment.services import comment_store

PHRASES = ["Thanks, this helped", "I disagree with the second point", "Source?",
           "Same experience here", "Could you expand on this?", "Great explanation"]


async def _insert(comment: Comment) -> int:
    # Through the store so every row also bumps its object's counter.
    async with async_session() as session:
        return await comment_store.insert_comment(session, comment)


async def seed(small: bool = False):
    num_objects = 5 if small else 200
    threads_per_object = 4 if small else 20
    max_replies = 3 if small else 12
    users = list(range(1, 51))

    print(f"Seeding: {num_objects} objects x {threads_per_object} threads, up to {max_replies} replies each")
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    total = 0
    for biz_id in range(1, num_objects + 1):
        biz = random.choice([Biz.ANSWER, Biz.EVALUATION])
        owner = random.choice(users)
        for _ in range(threads_per_object):
            author = random.choice(users)
            root_id = await _insert(Comment(
                commentator_id=author,
                biz=int(biz),
                biz_id=biz_id,
                content=random.choice(PHRASES),
                reply_to_uid=owner,
            ))
            total += 1
            thread = [(root_id, author)]
            for _ in range(random.randint(0, max_replies)):
                parent_id, parent_author = random.choice(thread)
                replier = random.choice(users)
                reply_id = await _insert(Comment(
                    commentator_id=replier,
                    biz=int(biz),
                    biz_id=biz_id,
                    content=random.choice(PHRASES),
                    parent_id=parent_id,
                    root_id=root_id,
                    reply_to_uid=parent_author,
                ))
                thread.append((reply_id, replier))
                total += 1
        if biz_id % 50 == 0:
            print(f"  {biz_id} objects seeded")

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"  Objects: {num_objects}")
    print(f"  Comments: {total}")


def main():
    parser = argparse.ArgumentParser(description="Seed the comment database")
    parser.add_argument("--small", action="store_true", help="Use small dataset (5 objects)")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small))


if __name__ == "__main__":
    main()
