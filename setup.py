# SPDX-License-Identifier: LGPL-3.0-or-later
from setuptools import setup, find_packages

setup(
    name="vmsparsify",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[l.strip() for l in open("requirements.txt", encoding="utf-8") if l.strip() and not l.startswith("#")],
    extras_require={
        # libguestfs bindings ship with the distro (python3-libguestfs)
        "guestfs": ["guestfs"],
        "test": ["pytest"],
    },
    entry_points={"console_scripts": ["vmsparsify=vmsparsify.__main__:main"]},
)
