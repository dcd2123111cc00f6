"""Setup script for the StratFlow Lite client layer."""

from pathlib import Path

from setuptools import find_packages, setup

# Read the README file
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

# Read requirements, separating test tooling from runtime dependencies
requirements_file = Path(__file__).parent / "requirements.txt"
requirements = []
test_requirements = []

if requirements_file.exists():
    for line in requirements_file.read_text().strip().split("\n"):
        line = line.strip()
        # Skip empty lines and comments
        if not line or line.startswith("#"):
            continue

        if "pytest" in line:
            test_requirements.append(line)
        else:
            requirements.append(line)

setup(
    name="stratflow-lite",
    version="0.1.0",
    description="Caching, recurrence, retry and rate-limited error reporting for the StratFlow back office",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="StratFlow Team",
    # Package configuration
    packages=find_packages(include=["stratflow_lite", "stratflow_lite.*"]),
    include_package_data=True,
    # Dependencies
    install_requires=requirements,
    extras_require={
        "test": test_requirements,
        "dev": test_requirements
        + [
            "black>=23.0.0",
            "isort>=5.12.0",
            "mypy>=1.0.0",
        ],
    },
    python_requires=">=3.10",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Office/Business :: Scheduling",
        "Framework :: AsyncIO",
    ],
    keywords="scheduling recurrence cache retry backoff rate-limit async",
    entry_points={
        "console_scripts": [
            "stratflow-lite=stratflow_lite.__main__:main",
        ],
    },
    package_data={
        "stratflow_lite": ["py.typed"],
    },
    zip_safe=False,
)
