from setuptools import setup, find_packages
import os
import io
from pt.version import __version__

here = os.path.abspath(os.path.dirname(__file__))

# Get the long description from the README file
with io.open(os.path.join(here, "pt", "README.pt-preprocess.rst"), encoding="utf-8") as ff:
    long_description = ff.read()

setup(
    name="preptools",
    version=__version__,
    description="Dependency extraction and preprocessing for C unit tests and their mocks",
    long_description=long_description,
    long_description_content_type="text/x-rst",
    python_requires=">=3.9",
    license="GPLv3+",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Build Tools",
        "Topic :: Software Development :: Testing",
        "License :: OSI Approved :: GNU General Public License v3 or later (GPLv3+)",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13"
    ],
    keywords="c unit-test mock preprocessor build",
    packages=find_packages(include=["pt", "pt.*"]),
    package_data={"pt": [ff for ff in os.listdir("pt") if ff.startswith("README")]},
    include_package_data=True,
    install_requires=[
        "configargparse>=1.5.3",
        "appdirs>=1.4.4",
        "psutil>=5.9.0",
        "PyYAML>=6.0",
    ],
    test_suite="pt",
    extras_require={
        "test": ["pytest>=7.0"],
    },
    scripts=[ff for ff in os.listdir(".") if ff.startswith("pt-")],
)
