"""Seed demo users scattered around a coordinate so discovery has something to show.

Usage: python -m scripts.seed_users [--count 30] [--lat 40.7128] [--lon -74.0060]
"""
import argparse
import asyncio
import random
import sys
from datetime import date
sys.path.insert(0, ".")

from sqlalchemy import select
from app.config import get_settings
from app.database import async_session_factory
from app.models.user import User
from app.utils.auth import encode_access_token


FIRST_NAMES = [
    "Ada", "Bea", "Cleo", "Dana", "Eli", "Finn", "Gus", "Hana",
    "Ivo", "Jude", "Kai", "Lena", "Milo", "Nia", "Omar", "Pia",
]
INTERESTS = [
    "hiking", "music", "cooking", "travel", "art", "yoga",
    "gaming", "reading", "running", "photography", "dancing", "film",
]
EDUCATION = ["High School", "Bachelors", "Masters", "PhD"]
RELIGIONS = ["None", "Christian", "Muslim", "Jewish", "Hindu", "Buddhist"]

# ~0.1 degrees of latitude is ~11 km
SPREAD_DEGREES = 0.3


def demo_user(index: int, lat: float, lon: float) -> User:
    name = random.choice(FIRST_NAMES)
    return User(
        username=f"demo_{index:03d}",
        email=f"demo_{index:03d}@kindred.test",
        full_name=f"{name} Demo",
        bio=f"Demo profile #{index}",
        birth_date=date(random.randint(1975, 2004), random.randint(1, 12), random.randint(1, 28)),
        gender=random.choice(["Man", "Woman", "Other"]),
        interested_in=random.choice(["Men", "Women", "Everyone"]),
        height=random.randint(150, 200),
        education=random.choice(EDUCATION),
        religion=random.choice(RELIGIONS),
        smoking=random.choice(["Yes", "No", "Sometimes"]),
        relationship_intent=random.choice(["Serious", "Casual", "Friends"]),
        interests=random.sample(INTERESTS, 3),
        latitude=lat + random.uniform(-SPREAD_DEGREES, SPREAD_DEGREES),
        longitude=lon + random.uniform(-SPREAD_DEGREES, SPREAD_DEGREES),
        coins=get_settings().STARTING_COINS,
    )


async def seed(count: int, lat: float, lon: float):
    async with async_session_factory() as session:
        created = []
        for i in range(count):
            user = demo_user(i, lat, lon)
            existing = await session.execute(
                select(User).where(User.username == user.username)
            )
            if existing.scalar_one_or_none() is None:
                session.add(user)
                created.append(user)
                print(f"  Seeded {user.username}: {user.gender}, {user.interests}")
            else:
                print(f"  {user.username} already exists, skipping.")
        await session.commit()

    if created:
        print(f"\nSample token for {created[0].username}:")
        print(f"  {encode_access_token(created[0].id, expires_in=7 * 24 * 3600)}")
    print(f"Done seeding {len(created)} users.")


def main():
    parser = argparse.ArgumentParser(description="Seed Kindred demo users")
    parser.add_argument("--count", type=int, default=30)
    parser.add_argument("--lat", type=float, default=40.7128)
    parser.add_argument("--lon", type=float, default=-74.0060)
    args = parser.parse_args()
    asyncio.run(seed(args.count, args.lat, args.lon))


if __name__ == "__main__":
    main()
