from setuptools import setup, find_namespace_packages

setup(
    name="dci",
    version="0.1.0",
    packages=find_namespace_packages(where="src", include=["dci", "dci.*"]),
    package_dir={"": "src"},
    python_requires=">=3.8",
    install_requires=[
        "pydantic>=2.0",
        "pyyaml>=6.0",
        "click>=8.0",
        "tenacity>=8.0",
        "pydantic-settings>=2.0",
        "python-dotenv>=1.0",
        "jinja2>=3.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
        "dev": [
            "black>=23.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "dci=dci.CLI.main:main",
        ],
    },
)
