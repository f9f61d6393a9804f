from setuptools import setup, find_packages

setup(
    name="depiction_core",
    version="0.1.0",
    packages=find_packages(include=["elements", "elements.*", "rendering", "rendering.*",
                                    "messaging", "messaging.*", "host", "host.*", "utils", "utils.*"]),
    install_requires=[
        "python-socketio",
        "aiohttp",
        "python-dotenv",
        "pydantic>=2",
        "pydantic-settings",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-mock",
        ],
    },
    entry_points={
        "console_scripts": [
            "depiction-server=host.main:main",
        ],
    },
    python_requires=">=3.8",
)
