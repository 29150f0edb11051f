# -------------------------------------------------------------------------
# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the MIT License. See License.txt in the project root for
# license information.
# --------------------------------------------------------------------------

from setuptools import setup, find_packages
import re


with open("README.md", "r") as fh:
    _long_description = fh.read()


filename = "edge-twins-module/edge_twins_module/constant.py"
version = None

with open(filename, "r") as fh:
    if not re.search("\n+VERSION", fh.read()):
        raise ValueError("VERSION  is not defined in constants.")

with open(filename, "r") as fh:
    for line in fh:
        if re.search("^VERSION", line):
            constant, value = line.strip().split("=")
            if not value:
                raise ValueError("Value for VERSION not defined in constants.")
            else:
                # Strip whitespace and quotation marks
                version = str(value.strip(' "'))
            break

setup(
    name="edge-twins-module",
    version=version,
    description="Azure IoT Edge test module for twin synchronization and message pass-through",
    license="MIT License",
    url="https://github.com/Azure/azure-iot-sdk-python/",
    author="Microsoft Corporation",
    author_email="opensource@microsoft.com",
    long_description=_long_description,
    long_description_content_type="text/markdown",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Testing",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    install_requires=[
        # The device SDK owns the MQTT/TLS transport (paho-mqtt, PySocks, requests, etc.)
        "azure-iot-device>=2.12.0,<3.0.0",
        "cryptography>=39.0.0",
        "typing_extensions",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-mock",
            "pytest-asyncio>=0.21",
            "pytest-testdox",
        ]
    },
    python_requires=">=3.8, <4",
    packages=find_packages(where="edge-twins-module", exclude=["tests", "tests.*"]),
    package_dir={"": "edge-twins-module"},
    entry_points={"console_scripts": ["edge-twins-module=edge_twins_module.app:main"]},
    zip_safe=False,
)
