from setuptools import setup, find_packages

# Read version from __version__.py without importing the package
version_file = {}
with open("xrpicker/__version__.py") as fp:
    exec(fp.read(), version_file)
__version__ = version_file['__version__']

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

python_requires = ">=3.9"

install_requires = [
    # Manifest and persisted state schemas
    "pydantic>=2.0,<3.0",

    # XDG config directory lookup (Linux discovery/activation)
    "platformdirs>=3.0",

    # Object header parsing for runtime bitness detection
    "lief>=0.16.0",
]

extras_require = {
    "test": [
        "pytest>=7.0",
    ],
}

classifiers = [
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3.9",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Operating System :: POSIX :: Linux",
    "Operating System :: Microsoft :: Windows",
]

setup(
    name="xrpicker",
    version=__version__,
    author="xrpicker contributors",
    description="Enumerate OpenXR runtimes, identify the active runtime, and switch it",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/rpavlik/xr-picker",
    license="MIT OR Apache-2.0",
    packages=find_packages(include=["xrpicker", "xrpicker.*"]),
    classifiers=classifiers,
    python_requires=python_requires,
    install_requires=install_requires,
    extras_require=extras_require,
    entry_points={
        "console_scripts": [
            "xrpicker=xrpicker.cli:main",
        ],
    },
    zip_safe=False,
)
