"""Install the account directory package."""

from setuptools import setup, find_packages

setup(
    name='account-directory',
    version='0.1.0',
    packages=find_packages(exclude=['*tests*']),
    install_requires=[
        "flask",
        "sqlalchemy>=1.4",
        "redis>=4.1",
        "fakeredis",
        "phonenumbers",
        "prometheus-client",
        "python-json-logger",
    ],
    extras_require={
        'test': [
            "pytest",
            "hypothesis",
            "mimesis>=5",
        ],
    },
    zip_safe=False
)
