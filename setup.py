from setuptools import setup, find_packages

setup(
    name="authbridge",
    version="0.1.0",
    packages=find_packages(include=["authbridge", "authbridge.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.110",
        "pydantic>=2.0",
        "pydantic-settings>=2.0",
        "sqlalchemy[asyncio]>=2.0",
        "aiosqlite>=0.19",
        "httpx>=0.27",
    ],
    extras_require={
        "postgres": ["asyncpg>=0.29"],
        "server": ["uvicorn[standard]>=0.29"],
        "test": ["pytest>=8.0", "pytest-asyncio>=0.23"],
    },
)
