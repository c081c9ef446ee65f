from setuptools import setup, find_packages

setup(
    name="attendee",
    version="0.1.0",
    packages=find_packages(include=["attendee", "attendee.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi",
        "starlette",
        "pydantic>=2",
        "pydantic-settings>=2.7",
        "nh3",
        "uvicorn",
    ],
    extras_require={
        "test": [
            "pytest",
            "httpx",
        ],
    },
)
