# create_db.py
import asyncio

from sqlalchemy.future import select

from shared.config import settings
from shared.db import engine, Base, AsyncSessionLocal
from shared.auth import get_password_hash

# Import all models here so they are registered with SQLAlchemy's metadata
from services.catalog.models import Subject, EducationStage, Material
from services.catalog.models.materials import format_grade_level
from services.directory.models import School, SchoolType
from services.directory.models.schools import format_school_code
from services.identity.models import User, UserRole
import services.issuance.models

SAMPLE_SUBJECTS = [
    ("English", "Core", EducationStage.ELEMENTARY),
    ("Mathematics", "Core", EducationStage.ELEMENTARY),
    ("Science", "Core", EducationStage.ELEMENTARY),
    ("Filipino", "Core", EducationStage.ELEMENTARY),
    ("English", "Core", EducationStage.JUNIOR_HIGH),
    ("Mathematics", "Core", EducationStage.JUNIOR_HIGH),
]

SAMPLE_SCHOOLS = [
    ("Compostela Central Elementary School", SchoolType.ELEMENTARY, "Compostela", 1, "Urban"),
    ("Monkayo National High School", SchoolType.SECONDARY, "Monkayo", 2, "Urban"),
    ("Nabunturan Integrated School", SchoolType.INTEGRATED, "Nabunturan", 1, "Urban"),
]

# (title, grade, quantity, source, subject name)
SAMPLE_MATERIALS = [
    ("English Learner's Material Grade 3", 3, 500, "DepEd Central", "English"),
    ("Mathematics Textbook Grade 4", 4, 350, "DepEd Central", "Mathematics"),
    ("English Activity Sheets Grade 5", 5, 1000, "Division Office", "English"),
]


async def init_models():
    async with engine.begin() as conn:
        print("🔧 Creating tables...")
        await conn.run_sync(Base.metadata.create_all)
        print("✅ Tables created.")


async def seed():
    async with AsyncSessionLocal() as db:
        admin = (await db.execute(
            select(User).where(User.username == settings.DEFAULT_ADMIN_USERNAME)
        )).scalars().first()
        if admin:
            print("ℹ️  Admin account already exists, skipping seed.")
            return

        db.add(User(
            username=settings.DEFAULT_ADMIN_USERNAME,
            hashed_password=get_password_hash(settings.DEFAULT_ADMIN_PASSWORD),
            name="System Administrator",
            role=UserRole.ADMIN
        ))

        subjects = {}
        for name, category, stage in SAMPLE_SUBJECTS:
            subject = Subject(name=name, category=category, education_stage=stage)
            db.add(subject)
            subjects.setdefault(name, subject)

        for number, (name, school_type, municipality, district, zone) in enumerate(SAMPLE_SCHOOLS, start=1):
            db.add(School(
                school_id=format_school_code(number),
                schoolname=name,
                schooltype=school_type,
                municipality=municipality,
                congressional_district=district,
                zone=zone
            ))

        await db.flush()
        for title, grade, quantity, source, subject_name in SAMPLE_MATERIALS:
            db.add(Material(
                title=title,
                grade_level=format_grade_level(grade),
                quantity=quantity,
                source=source,
                subject_id=subjects[subject_name].id
            ))

        await db.commit()
        print(f"✅ Seeded admin '{settings.DEFAULT_ADMIN_USERNAME}', {len(SAMPLE_SUBJECTS)} subjects, "
              f"{len(SAMPLE_SCHOOLS)} schools and {len(SAMPLE_MATERIALS)} materials.")


async def main():
    await init_models()
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
