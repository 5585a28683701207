from setuptools import setup, find_packages

setup(
    name="cbc_timing_oracle",
    version="0.1",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        'pyyaml',
        'numpy',
        'scipy',
        'python-dotenv'
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'cbc-timing-oracle=cbc_timing_oracle.main:main',
        ],
    },
)
