from setuptools import setup


setup(
    name="maintgrid",
    version="0.1.0",
    description="Spreadsheet import, field mapping and hierarchical maintenance rollup for equipment trees",
    packages=["maintgrid"],
    python_requires=">=3.9",
    install_requires=[
        "pandas",
        "chardet",
        "openpyxl",
        "rapidfuzz",
    ],
    extras_require={
        "excel-legacy": ["xlrd"],
        "test": ["pytest"],
        "all": ["xlrd"],
    },
    entry_points={
        "console_scripts": [
            "maintgrid=maintgrid.cli:main",
        ]
    },
)
