from setuptools import setup, find_packages

setup(
    name="lintd",
    version="0.1.0",
    description="Daemon that keeps a Python style checker warm between CLI invocations",
    author="lintd contributors",
    license="MIT",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "typer>=0.9.0",
        "python-dotenv>=1.0.0",
        "pycodestyle>=2.11.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "lintd=lintd.main:lintd",
        ],
    },
    python_requires=">=3.10",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
)
