from setuptools import setup, find_packages

setup(
    name="mailsbe",
    version="0.1.0",
    description="Email open tracking: a tracking pixel endpoint and an owner-scoped dashboard",
    author="",
    author_email="",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.10",
    install_requires=[
        "Flask>=2.2.0",
        "Jinja2>=3.0.0",
        "SQLAlchemy>=2.0.0",
        "email-validator>=2.0.0",
        "python-dotenv>=0.19.0",
        "click>=8.0.0",
        "tabulate>=0.9.0",
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "requests>=2.28.0",
        "PyYAML>=5.4.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "mailsbe=mailsbe.cli:main",
        ],
    },
)
