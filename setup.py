from setuptools import setup, find_packages

setup(
    name="imp-lang",
    version="0.1.0",
    description="Imp — a small imperative language with a soundness harness",
    packages=find_packages(include=["implang", "implang.*"]),
    python_requires=">=3.10",
    install_requires=[
        "PyYAML>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "hypothesis>=6.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "imp=implang.cli:main",
        ],
    },
)
