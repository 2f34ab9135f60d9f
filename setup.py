from setuptools import find_packages, setup

setup(
    name="sd-models",
    version="0.1.0",
    packages=find_packages(
        include=[
            "sd_common",
            "sd_common.*",
            "sd_models",
            "sd_models.*",
            "sd_persistence",
            "sd_persistence.*",
            "sd_admin",
            "sd_admin.*",
        ]
    ),
    install_requires=[
        "aiosqlite>=0.19.0",
        "click>=8.1.0",
        "cryptography>=41.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-xdist>=3.3.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "sd-admin=sd_admin.cli:cli",
        ],
    },
    python_requires=">=3.11",
)
