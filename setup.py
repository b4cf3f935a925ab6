from setuptools import setup, find_packages

setup(
    name="patchmate",
    version="0.1.0",
    description="Locate and apply multi-section text edits to files with stale line hints",
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,
    python_requires=">=3.9",
    install_requires=[
        "pydantic>=2.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
)
