"""
rootfs - Setup Configuration

Root-relative virtual paths with alias substitution and a polling
file/directory watcher.

License: MIT
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README for long description
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

# Core dependencies
core_deps = [
    # Configuration files
    "pydantic>=2.11.9",
    "pyyaml>=6.0.2",
    # Command line
    "click>=8.1.7",
]

# Development dependencies
dev_deps = [
    # Testing
    "pytest>=8.4.1",
    "pytest-cov>=6.2.1",
    # Code quality
    "black>=25.0.0",
    "flake8>=7.1.0",
    "mypy>=1.13.0",
    "types-PyYAML>=6.0.12",
]

setup(
    name="rootfs",
    version="0.1.0",

    # Package description
    description="Root-relative virtual paths with aliases and a polling file watcher",
    long_description=long_description,
    long_description_content_type="text/markdown",

    # Package discovery
    packages=find_packages(where="src"),
    package_dir={"": "src"},

    # Python version requirement
    python_requires=">=3.9",

    # Dependencies
    install_requires=core_deps,

    # Optional dependencies (extras)
    extras_require={
        "core": core_deps,

        # Development: testing + code quality
        "dev": core_deps + dev_deps,
        "test": ["pytest>=8.4.1", "pytest-cov>=6.2.1"],
    },

    # PyPI classifiers
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
        "Operating System :: MacOS",
        "Operating System :: Microsoft :: Windows",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3 :: Only",
        "Topic :: System :: Filesystems",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],

    # Keywords for PyPI search
    keywords=["filesystem", "virtual-path", "alias", "watcher", "polling"],

    license="MIT",

    include_package_data=True,
    zip_safe=False,

    entry_points={
        "console_scripts": [
            "rootfs=rootfs.cli:main",
        ],
    },
)
