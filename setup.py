from setuptools import setup, find_packages

setup(
    name="nlql",
    version="0.4.0",
    description="nlql - natural language to SQL in a full-screen terminal session",
    packages=find_packages(exclude=["tests*", "*.egg-info"]),
    py_modules=["main", "config", "simple_cli", "server"],
    package_data={"ui": ["*.tcss"]},
    python_requires=">=3.10",
    install_requires=[
        "textual>=0.47.0",
        "rich>=13.7.0",
        "mysql-connector-python>=8.3.0",
        "psycopg2-binary>=2.9.9",
        "langchain-core>=0.2.0",
        "langchain-anthropic>=0.1.15",
        "langchain-openai>=0.1.8",
        "python-dotenv>=1.0.0",
        "pydantic>=2.5.0",
        "pydantic-settings>=2.1.0",
        "loguru>=0.7.2",
        "prompt_toolkit>=3.0.43",
        "click>=8.1.7",
        "tabulate>=0.9.0",
        "fastapi>=0.110.0",
        "uvicorn>=0.27.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.23.0",
            "httpx>=0.26.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "nlql=main:cli",
        ],
    },
)
