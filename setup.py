from setuptools import setup, find_packages

setup(
    name="berkshire-rag",
    version="0.1.0",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.10",
    install_requires=[
        "numpy>=1.24.0",
        "openai>=1.0.0",
        "pydantic>=2.0.0",
        "python-dotenv>=1.0.0",
        "PyYAML>=6.0.0",
        "SQLAlchemy[asyncio]>=2.0.0",
        "asyncpg>=0.28.0",
        "aiosqlite>=0.19.0",
        "pgvector>=0.2.0",
        "tqdm>=4.65.0",
    ],
    extras_require={
        "huggingface": [
            "torch>=2.0.0",
            "transformers>=4.30.0",
        ],
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
        ],
        "dev": [
            "black>=23.0.0",
            "isort>=5.12.0",
            "mypy>=1.0.0",
            "pytest-cov>=4.1.0",
            "pre-commit>=3.3.0",
        ],
    },
)
