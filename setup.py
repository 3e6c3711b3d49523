from setuptools import find_packages
from setuptools import setup


setup(
    name="lmrtrace",
    version="0.1.0",
    description="OpenTelemetry tracing for light_my_request inject calls",
    packages=find_packages(exclude=["tests*"]),
    package_data={
        "lmrtrace": ["py.typed"],
    },
    zip_safe=False,
    python_requires=">=3.8",
    install_requires=[
        "attrs>=20",
        "opentelemetry-api>=1.27",
        "opentelemetry-semantic-conventions>=0.48b0",
        "packaging>=17.1",
        "wrapt>=1.14,<2",
    ],
    extras_require={
        "tests": [
            "mock",
            "opentelemetry-sdk>=1.27",
            "pytest",
        ],
    },
)
