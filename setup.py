#!/usr/bin/env python

import os
import re
from setuptools import setup

version_file = os.path.join('mimetree', '__init__.py')
with open(version_file, 'rb') as f:
    version_data = f.read().decode('ascii')

version_re = re.compile(r'__version__ = "((?:\d+)\.(?:\d+)\.(?:\d+))"')
version = version_re.search(version_data).group(1)

tests_require = [
    'pytest',
    'pytest-cov',
    'PyYAML'
]

setup(name='mimetree',
      version=version,
      description='A fault-tolerant streaming MIME part tree parser for Python',
      author='mimetree contributors',
      license='Apache',
      platforms='any',
      zip_safe=False,
      tests_require=tests_require,
      extras_require={
          'test': tests_require,
          'dev': ['invoke'],
          'fuzz': ['atheris'],
      },
      packages=[
          'mimetree',
      ],
      python_requires='>=3.8',
      classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: Apache Software License',
        'Operating System :: OS Independent',
        'Programming Language :: Python :: 3 :: Only',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Communications :: Email',
        'Topic :: Software Development :: Libraries :: Python Modules'
      ],
     )
