from setuptools import setup, find_packages

setup(
    name="reqthrottle",
    version="0.1.0",
    packages=find_packages(include=["reqthrottle", "reqthrottle.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi",
        "starlette",
        "pydantic>=2",
        "pydantic-settings>=2",
        "redis>=5.0.1",
        "uvicorn",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
            "httpx",
        ],
    },
    entry_points={
        "console_scripts": [
            "reqthrottle=reqthrottle.app.main:run",
        ],
    },
)
