from setuptools import find_packages, setup

setup(
    name="crawler-lambdas",
    version="0.1.0",
    packages=find_packages(include=["crawler_lambdas", "crawler_lambdas.*"]),
    install_requires=[
        "pulumi>=3.100.0,<4.0.0",
        "pulumi-aws>=6.0.0,<7.0.0",
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
    ],
    extras_require={
        "test": [
            "pytest",
        ]
    },
    python_requires=">=3.9",
)
