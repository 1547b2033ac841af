from pathlib import Path

from setuptools import find_packages, setup

here = Path(__file__).parent
readme = (here / "README.md").read_text(encoding="utf-8") if (here / "README.md").exists() else ""

setup(
    name="otel-sla",
    version="0.1.0",
    description="Process memory telemetry emitter for OpenTelemetry collectors",
    long_description=readme,
    long_description_content_type="text/markdown",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.10",
    install_requires=[
        "pydantic>=1.10",
        "PyYAML>=6.0",
        "psutil>=5.9",
        "grpcio>=1.60",
        "opentelemetry-api>=1.24",
        "opentelemetry-sdk>=1.24",
        "opentelemetry-exporter-otlp-proto-grpc>=1.24",
    ],
    extras_require={
        "dev": ["pytest>=7.4"],
    },
    entry_points={
        "console_scripts": [
            "otel-sla=otel_sla.app:main",
        ]
    },
    include_package_data=True,
)
