from setuptools import setup, find_packages

setup(
    name="syncdb",
    version="0.1.0",
    description="Client-side key-value store kept in sync with a versioned server",
    author="adamfilli",
    packages=find_packages(include=["syncdb", "syncdb.*"]),
    install_requires=[
        "pandas",
    ],
    extras_require={
        "test": ["pytest"],
        "viz": ["matplotlib"],
    },
    include_package_data=True,
    python_requires=">=3.11",
)
