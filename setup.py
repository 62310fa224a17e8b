import os
from typing import List

import fixreconcile
from setuptools import setup, find_packages


def read(file_name: str) -> str:
    with open(os.path.join(os.path.dirname(__file__), file_name)) as of:
        return of.read()


def read_requirements(file_name: str) -> List[str]:
    lines = (line.split("#", 1)[0].strip() for line in read(file_name).splitlines())
    return [line for line in lines if line]


setup(
    name=fixreconcile.__title__,
    version=fixreconcile.__version__,
    description=fixreconcile.__description__,
    license=fixreconcile.__license__,
    packages=find_packages(exclude=["test", "test.*"]),
    package_data={"fixreconcile": ["py.typed"]},
    long_description=read("README.md"),
    long_description_content_type="text/markdown",
    include_package_data=True,
    zip_safe=False,
    install_requires=read_requirements("requirements.txt"),
    extras_require={"test": read_requirements("requirements-test.txt")},
    entry_points={"console_scripts": ["fixreconcile=fixreconcile.__main__:main"]},
    classifiers=[
        # Current project status
        "Development Status :: 4 - Beta",
        # Audience
        "Intended Audience :: System Administrators",
        "Intended Audience :: Information Technology",
        # License information
        "License :: OSI Approved :: Apache Software License",
        # Supported python versions
        "Programming Language :: Python :: 3.9",
        # Supported OS's
        "Operating System :: POSIX :: Linux",
        "Operating System :: Unix",
        # Extra metadata
        "Environment :: Console",
        "Natural Language :: English",
        "Topic :: Utilities",
    ],
    keywords="cloud gcp infrastructure",
    url="https://github.com/someengineering/fixinventory/tree/main/fixreconcile",
)
