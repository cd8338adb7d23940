from setuptools import setup, find_packages

setup(
    name='spectra',
    version='0.1.0',
    description='OpenTelemetry spans and metrics for individual test executions',
    packages=find_packages(exclude=['tests', 'tests.*']),
    python_requires='>=3.9',
    install_requires=[
        # Core minimum dependencies required for all installs
        'opentelemetry-api>=1.30.0',
        'opentelemetry-sdk>=1.30.0',
        'opentelemetry-exporter-otlp-proto-grpc>=1.30.0',
        'opentelemetry-exporter-otlp-proto-http>=1.30.0',
        'opentelemetry-semantic-conventions>=0.51b0',
        'pydantic>=2.0',
        'colorama>=0.4.6',
        'requests>=2.31.0',
        'pytest>=8.0',
    ],
    entry_points={
        'pytest11': [
            'spectra = spectra.pytest_plugin',
        ],
    },
)
