"""Initialize the UniLink database schema.

Creates every table that does not exist yet. With ``--seed`` it also loads a
demo university with a few users, session tokens, profiles and events so the
API can be exercised right away. ``--drop`` starts from an empty schema.

    python init_db.py [--drop] [--seed]
"""

import argparse
import asyncio
import sys
from datetime import date, timedelta

from sqlalchemy import select, text
from sqlalchemy.exc import OperationalError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from unilink import models
from unilink.config import settings
from unilink.db import AsyncSessionMaker, engine
from unilink.models import Base
from unilink.timeutil import utcnow

DEMO_DOMAIN = "demo.unilink.edu"

DEMO_USERS = [
    # id, name, email, role, graduation year, major, company, location, skills
    ("demo-admin", "Asha Rao", "admin@demo.unilink.edu", "university_admin", None, None, None, "Bengaluru", []),
    ("demo-alumna", "Meera Iyer", "meera@demo.unilink.edu", "alumni", 2016, "Computer Science", "Infosys",
     "Bengaluru", ["Python", "SQL", "Machine Learning"]),
    ("demo-alumnus", "Rahul Verma", "rahul@demo.unilink.edu", "alumni", 2012, "Mechanical Engineering", "Tata Motors",
     "Pune", ["Project Management", "CAD"]),
    ("demo-student", "Kiran Das", "kiran@demo.unilink.edu", "student", 2026, "Computer Science", None,
     "Bengaluru", ["python", "react", "docker"]),
]


@retry(
    stop=stop_after_attempt(5),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_exception_type((OperationalError, OSError)),
    reraise=True,
)
async def wait_for_database() -> None:
    """Fail only after several attempts, for databases still starting up."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def init_database(*, drop: bool = False) -> None:
    """Create all database tables."""
    print(f"Initializing database: {settings.db.url.split('@')[-1]}")
    await wait_for_database()
    print("✓ Database reachable")

    async with engine.begin() as conn:
        if drop:
            await conn.run_sync(Base.metadata.drop_all)
            print("✓ Dropped existing tables")
        await conn.run_sync(Base.metadata.create_all)
        print("✓ Created all tables")

    print(f"Tables: {', '.join(Base.metadata.tables.keys())}")


async def seed_demo_data() -> None:
    """Insert the demo tenant unless it already exists."""
    async with AsyncSessionMaker() as session:
        existing = await session.execute(select(models.University).where(models.University.domain == DEMO_DOMAIN))
        if existing.scalar_one_or_none() is not None:
            print("• Demo data already present, skipping")
            return

        university = models.University(
            name="UniLink Demo University",
            domain=DEMO_DOMAIN,
            country="India",
            description="Sample tenant created by init_db.py --seed",
            tenant_id=DEMO_DOMAIN.replace(".", "-"),
            is_active=True,
        )
        session.add(university)
        await session.flush()

        expires = utcnow() + timedelta(days=30)
        for user_id, name, email, role, year, major, company, location, skills in DEMO_USERS:
            session.add(models.User(id=user_id, name=name, email=email, email_verified=True))
            session.add(models.Session(token=f"{user_id}-token", user_id=user_id, expires_at=expires))
            session.add(models.Profile(
                user_id=user_id,
                role=role,
                university_id=university.id,
                graduation_year=year,
                major=major,
                company=company,
                location=location,
                skills=skills,
                is_verified=role != "student",
                verification_status="verified" if role != "student" else "pending",
            ))
        await session.flush()

        today = date.today()
        session.add_all([
            models.Event(
                title="Alumni Meetup 2026",
                description="Annual get-together of the alumni network.",
                event_date=today + timedelta(days=30),
                event_time="18:00",
                location="Main Auditorium",
                university_id=university.id,
                organizer_id="demo-admin",
                max_attendees=100,
                tags=["networking", "alumni"],
                registration_deadline=utcnow() + timedelta(days=20),
            ),
            models.Event(
                title="Career Guidance Webinar",
                description="Alumni share how they landed their first roles.",
                event_date=today + timedelta(days=10),
                event_time="16:30",
                location="Online",
                university_id=university.id,
                organizer_id="demo-alumna",
                tags=["career"],
            ),
        ])
        await session.commit()

    print(f"✓ Seeded demo university {DEMO_DOMAIN} with {len(DEMO_USERS)} users")
    print("  Bearer tokens: " + ", ".join(f"{u[0]}-token" for u in DEMO_USERS))


async def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Create the UniLink schema")
    parser.add_argument("--drop", action="store_true", help="drop existing tables first")
    parser.add_argument("--seed", action="store_true", help="load demo data")
    args = parser.parse_args(argv)

    try:
        await init_database(drop=args.drop)
        if args.seed:
            await seed_demo_data()
    except Exception as e:
        print(f"\n❌ Error initializing database: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)
    finally:
        await engine.dispose()

    print("\n✅ Database initialization complete!")


if __name__ == "__main__":
    asyncio.run(main())
