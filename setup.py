"""Setup cumulus-api."""

from setuptools import find_packages, setup

with open("README.md") as f:
    long_description = f.read()

inst_reqs = [
    "aws-lambda-powertools[tracer]",
    "aws-xray-sdk",
    "boto3",
    "psycopg[binary]",
    "pydantic>2.0",
    "pydantic-settings",
    "SQLAlchemy>=2.0",
]

extra_reqs = {
    "dev": ["pre-commit", "python-dotenv"],
    "test": [
        "pytest",
        "pytest-cov",
        "moto[dynamodb,s3]>=5.0",
    ],
}


setup(
    name="cumulus-api",
    version="0.1.0",
    description="Dual-store record persistence for Cumulus ingest workflows",
    long_description=long_description,
    long_description_content_type="text/markdown",
    python_requires=">=3.9",
    classifiers=[
        "Intended Audience :: Information Technology",
        "Intended Audience :: Science/Research",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
    ],
    keywords="",
    license="MIT",
    packages=find_packages(exclude=["ez_setup", "examples", "tests"]),
    include_package_data=True,
    zip_safe=False,
    install_requires=inst_reqs,
    extras_require=extra_reqs,
)
