# Package installation script

from setuptools import setup, find_packages

setup(
    name="sol_gateway",
    version="0.1.0",
    packages=find_packages(where="src", exclude=["tests", "tests.*"]),
    package_dir={"": "src"},
    python_requires=">=3.9",
    entry_points={
        "console_scripts": [
            "sol_gateway=sol_gateway.__main__:main",
        ],
    },
    install_requires=[
        "fastapi",
        "hypercorn",
        "pyyaml",
        "aiomqtt>=2",
        "pydantic>=2.5",
        "google-genai>=1.0",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
            "httpx",
        ],
    },
)
