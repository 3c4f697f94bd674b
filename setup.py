from setuptools import setup, find_packages

setup(
    name="financial_calculator_engine",
    version="0.1.0",
    description="Financial calculator engine: amortization, compounding, IRR and closed-form converters",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "numpy",
        "pandas",
        "scipy",
        "structlog",
        "pydantic-settings",
    ],
    extras_require={
        "test": ["pytest"],
    },
    python_requires=">=3.8",
)
