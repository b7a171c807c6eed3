#!/usr/bin/env python

"""Setup file and install script for bioBakery metagenomic profiling pipelines"""

import os
import subprocess

import setuptools

VERSION = '1.0.0'

# add version number and git commit hash of the current revision to version.py
try:
    git_run = subprocess.run(['git', 'rev-parse', '--short', 'HEAD'], stdout=subprocess.PIPE,
                             stderr=subprocess.DEVNULL)
    git_run.check_returncode()
except (subprocess.SubprocessError, OSError):
    commit_hash = ''
else:
    commit_hash = git_run.stdout.strip().decode()

here = os.path.dirname(os.path.abspath(__file__))
with open(os.path.join(here, 'biobakerymgx', 'pipeline', 'version.py'), 'w') as version_file:
    version_file.writelines([f'__version__ = "{VERSION}"\n',
                             f'__git_revision__ = "{commit_hash}"\n'])

# external tools (fastqc, kneaddata, metaphlan, humann, multiqc) are installed via Conda
setuptools.setup(name="biobakerymgx",
                 version=VERSION,
                 description="Taxonomic and functional profiling of shotgun metagenomes with bioBakery tools",
                 packages=setuptools.find_packages(exclude=["tests", "tests.*"]),
                 package_data={"biobakerymgx": ["assets/*.yml"]},
                 scripts=["scripts/biobakerymgx.py"],
                 python_requires=">=3.7",
                 install_requires=["joblib", "logbook", "pandas", "PyYAML", "requests", "toolz"],
                 extras_require={"test": ["mock", "pytest", "pytest-mock"]})
