import io
import os
import tempfile

import pytest
import pytest_asyncio

# Point the app at throwaway storage before anything imports app.config
_TEST_DIR = tempfile.mkdtemp(prefix="yard-analysis-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/test.sqlite3"
os.environ["DATA_DIR"] = _TEST_DIR
os.environ["API_KEY"] = ""
os.environ["OPENAI_API_KEY"] = ""


@pytest.fixture(autouse=True, scope="session")
def setup_test_db():
    import asyncio

    from app.database import create_tables

    asyncio.run(create_tables())


@pytest_asyncio.fixture
async def session_factory():
    """A private in-memory database, for tests that need exact table contents."""
    from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
    from sqlalchemy.pool import StaticPool

    from app.database import Base
    from app.models import analysis, plant  # noqa: F401

    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


def _encode(image, fmt: str, **kwargs) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format=fmt, **kwargs)
    return buf.getvalue()


@pytest.fixture
def make_image():
    """Build real image bytes. ``noise=True`` gives an incompressible image."""
    from PIL import Image

    def _make(fmt: str = "JPEG", width: int = 64, height: int = 48, noise: bool = False) -> bytes:
        if noise:
            image = Image.frombytes("RGB", (width, height), os.urandom(width * height * 3))
        else:
            image = Image.new("RGB", (width, height), color=(34, 139, 34))
        return _encode(image, fmt)

    return _make
