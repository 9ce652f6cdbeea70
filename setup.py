import setuptools

setuptools.setup(
    name="tiny-pgtest",
    version="0.1.0",
    description="Throwaway PostgreSQL servers for unit tests",
    packages=setuptools.find_packages(include=["tiny_pgtest", "tiny_pgtest.*"]),
    python_requires=">=3.9",
    install_requires=[
        "pg8000>=1.29",
        "retry>=0.9.2",
        "typer>=0.9",
    ],
    extras_require={
        "test": ["pytest>=7"],
    },
    entry_points={
        "console_scripts": ["tiny-pgtest=tiny_pgtest.__main__:main"],
    },
)
