from setuptools import setup, find_packages


setup(
    name="tarlet",
    version="0.1",
    packages=find_packages(include=["tarlet", "tarlet.*"]),
    description="A minimal ustar archive codec: create, append, list, update and extract regular files.",
    author="vercingetorx",
    python_requires=">=3.8",
    install_requires=[],
    entry_points={
        "console_scripts": [
            "tarlet=tarlet.cli:main",
        ]
    },
)
