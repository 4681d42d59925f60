import copy
import json
import os
from pathlib import Path

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./.pytest-catalog.db")
os.environ.setdefault("CATALOG_SYNC_ON_STARTUP", "false")

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from coursecatalog.core.config import Settings
from coursecatalog.core.database import Base
from coursecatalog.models import orm
from coursecatalog.schemas.results import COUNT_ENTITIES
from coursecatalog.services.store import CatalogStore

BASE_SNAPSHOT = {
    "version": "1.0.0",
    "exportedAt": "2024-06-01T12:00:00.000Z",
    "courses": [
        {
            "id": "c1", "title": "Florida Real Estate 14-Hour CE", "state": "FL", "productType": "RealEstate",
            "requirementCycleType": "Continuing Education", "hoursRequired": 14, "price": 5900, "sku": "FL-CE-14",
            "createdAt": "2024-03-05T14:30:00.000Z",
        },
        {
            "id": "c2", "title": "FREC I Pre-Licensing", "state": "FL", "productType": "RealEstate",
            "requirementCycleType": "Pre-Licensing", "hoursRequired": 63, "price": 19900, "sku": "FL-PRE-63",
        },
    ],
    "units": [
        {"id": "u1", "courseId": "c1", "unitNumber": 1, "title": "Hour 1: Ethics", "sequence": 1},
        {"id": "u2", "courseId": "c1", "unitNumber": 2, "title": "Hour 2: Escrow", "sequence": 2},
        {"id": "u3", "courseId": "c1", "unitNumber": 3, "title": "Unit 3 Review", "sequence": 3},
        {"id": "u4", "courseId": "c1", "unitNumber": 4, "title": "Introduction", "sequence": 4},
        {"id": "u5", "courseId": "c2", "unitNumber": 1, "title": "Unit 1: Licensing", "sequence": 1},
    ],
    "lessons": [
        {"id": "l1", "unitId": "u1", "lessonNumber": 1, "title": "Duties to the public", "content": "..."},
        {"id": "l2", "unitId": "u2", "lessonNumber": 1, "title": "Escrow accounts", "durationMinutes": 20},
        {"id": "l3", "unitId": "u5", "lessonNumber": 1, "title": "Who needs a license"},
    ],
    "questionBanks": [
        {"id": "b1", "courseId": "c1", "unitId": "u1", "title": "Hour 1 Quiz", "bankType": "unit_quiz"},
        {"id": "b2", "courseId": "c2", "unitId": "u5", "title": "Unit 1 Quiz", "bankType": "unit_quiz"},
    ],
    "bankQuestions": [
        {"id": "bq1", "bankId": "b1", "questionText": "Ethics Q1", "options": ["A", "B"], "correctOption": 0},
        {"id": "bq2", "bankId": "b1", "questionText": "Ethics Q2", "options": "[\"A\",\"B\"]", "correctOption": 1},
        {"id": "bq3", "bankId": "b2", "questionText": "Licensing Q1", "options": ["A", "B", "C"], "correctOption": 2},
    ],
    "practiceExams": [
        {"id": "e1", "courseId": "c1", "title": "Hour 2 Quiz", "totalQuestions": 3},
        {"id": "e2", "courseId": "c1", "title": "Unit 3 Quiz", "totalQuestions": 2},
        {"id": "e3", "courseId": "c2", "title": "Final Exam Form A", "totalQuestions": 1},
    ],
    "examQuestions": [
        {"id": "eq1", "examId": "e1", "questionText": "Escrow Q1", "correctAnswer": "2",
         "options": ["w", "x", "y", "z"], "explanation": "Because.", "sequence": 1},
        {"id": "eq2", "examId": "e1", "questionText": "Escrow Q2", "correctAnswer": "1 - B",
         "options": ["w", "x"], "sequence": 2},
        {"id": "eq3", "examId": "e1", "questionText": "Escrow Q3", "correctAnswer": "C",
         "options": ["w", "x", "y"], "sequence": 3},
        {"id": "eq4", "examId": "e2", "questionText": "Review Q1", "correctAnswer": "0", "sequence": 1},
        {"id": "eq5", "examId": "e2", "questionText": "Review Q2", "correctAnswer": "3", "sequence": 2},
        {"id": "eq6", "examId": "e3", "questionText": "Final Q1", "correctAnswer": "1", "sequence": 1},
    ],
    "bundles": [
        {"id": "bd1", "name": "Florida Starter Bundle", "bundlePrice": 22900, "individualCoursePrice": 25800},
    ],
    "bundleCourses": [
        {"bundleId": "bd1", "courseId": "c1", "sequence": 1},
        {"bundleId": "bd1", "courseId": "c2", "sequence": 2},
    ],
}


@pytest.fixture
def snapshot_data():
    return copy.deepcopy(BASE_SNAPSHOT)


@pytest.fixture
def snapshot_path(tmp_path):
    return tmp_path / "catalogSnapshot.json"


@pytest.fixture
def write_snapshot(snapshot_path):
    def _write(data, path: Path = None) -> Path:
        target = path or snapshot_path
        target.write_text(json.dumps(data), encoding="utf-8")
        return target
    return _write


@pytest.fixture
def test_settings(tmp_path, snapshot_path):
    return Settings(
        ENVIRONMENT="testing",
        CATALOG_LOG_DIR=str(tmp_path / "logs"),
        CATALOG_SNAPSHOT_PATHS=str(snapshot_path),
        CATALOG_IMPORT_TIMEOUT_SECONDS=30,
        CATALOG_SYNC_ON_STARTUP=False,
    )


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
def row_counts(session_factory):
    async def _counts():
        async with session_factory() as session:
            store = CatalogStore(session)
            return {key: await store.count(getattr(orm, model)) for key, (_, model) in COUNT_ENTITIES.items()}
    return _counts
