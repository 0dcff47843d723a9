from setuptools import setup, find_namespace_packages

setup(
    name="d2q",
    version="0.1.0",
    description="Convert docker run commands and Docker Compose files into Podman Quadlet units",
    packages=find_namespace_packages(where="src", include=["d2q", "d2q.*"]),
    package_dir={"": "src"},
    python_requires=">=3.8",
    install_requires=[
        "pydantic>=2.0",
        "pyyaml>=6.0",
        "click>=8.0",
        "jinja2>=3.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "d2q=d2q.CLI.main:main",
        ],
    },
)
