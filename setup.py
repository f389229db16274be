from setuptools import setup, find_packages


setup(
    name="ardarc",
    version="0.1",
    packages=find_packages(),
    description="Random-access header/data archive engine with trie lookup and in-place replacement.",
    install_requires=[
        "pycryptodomex>=3.23.0",
        "zstandard>=0.22.0",
    ],
    entry_points={
        "console_scripts": [
            "ardarc=ardarc.cli:main",
        ]
    },
)
