from setuptools import setup, find_packages


setup(
    name="ark",
    version="0.1",
    packages=find_packages(include=["ark", "ark.*"]),
    description="Encrypted, category-aware backup and selective restore for OpenClaw installations.",
    author="vercingetorx",
    install_requires=[
        "pycryptodomex>=3.23.0",
    ],
    entry_points={
        "console_scripts": [
            "ark=ark.cli:main",
        ]
    },
)
