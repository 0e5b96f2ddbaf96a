from setuptools import setup

with open("tapo/version.py") as f:
    exec(f.read())

setup(
    name="python-tapo",
    version=__version__,  # type: ignore # noqa: F821
    description="Python API for TP-Link Tapo devices on the local network",
    url="https://github.com/python-tapo/python-tapo",
    author="",
    author_email="",
    license="GPLv3",
    packages=["tapo", "tapo.transports"],
    install_requires=[
        "aiohttp>=3.10",
        "yarl",
        "cryptography>=1.9",
        "orjson>=3.9",
        "mashumaro>=3.14",
        "asyncclick>=8.1.7",
    ],
    extras_require={
        "test": [
            "pytest>=8",
            "pytest-asyncio>=0.23",
            "pytest-mock",
            "freezegun",
            "multidict",
        ],
    },
    python_requires=">=3.11",
    entry_points={"console_scripts": ["tapo=tapo.cli:cli"]},
    zip_safe=False,
)
