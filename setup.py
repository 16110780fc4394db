import os
import buildkitemetrics
from setuptools import setup, find_packages


def read(file_name: str) -> str:
    with open(os.path.join(os.path.dirname(__file__), file_name)) as of:
        return of.read()


def read_requirements(file_name: str) -> list:
    return [line.strip() for line in read(file_name).splitlines() if line.strip() and not line.startswith("#")]


setup(
    name=buildkitemetrics.__title__,
    version=buildkitemetrics.__version__,
    description=buildkitemetrics.__description__,
    license=buildkitemetrics.__license__,
    packages=find_packages(include=["buildkitemetrics", "buildkitemetrics.*"]),
    long_description=read("README.md"),
    long_description_content_type="text/markdown",
    entry_points={
        "console_scripts": [
            "buildkitemetrics = buildkitemetrics.__main__:main",
        ]
    },
    include_package_data=True,
    zip_safe=False,
    python_requires=">=3.8",
    install_requires=read_requirements("requirements.txt"),
    extras_require={"test": read_requirements("requirements-test.txt")},
    classifiers=[
        # Current project status
        "Development Status :: 4 - Beta",
        # Audience
        "Intended Audience :: System Administrators",
        "Intended Audience :: Information Technology",
        # License information
        "License :: OSI Approved :: Apache Software License",
        # Supported python versions
        "Programming Language :: Python :: 3",
        # Supported OS's
        "Operating System :: POSIX :: Linux",
        "Operating System :: Unix",
        # Extra metadata
        "Environment :: Console",
        "Natural Language :: English",
        "Topic :: System :: Monitoring",
        "Topic :: Utilities",
    ],
    keywords="buildkite prometheus exporter",
)
