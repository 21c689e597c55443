# ================================================================================================
# setup.py - Package Setup
# ================================================================================================

from setuptools import setup, find_packages

setup(
    name="smartcamera-tracking-client",
    version="1.0.0",
    description="SmartCamera streaming client for real-time detection and tracking overlays",
    author="SmartCamera Team",
    author_email="team@smartcamera.com",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.8",
    install_requires=[
        "pydantic>=2.5.0",
        "pydantic-settings>=2.1.0",
        "websockets>=12.0",
        "opencv-python>=4.8.1.78",
        "numpy>=1.24.3",
        "httpx>=0.25.2",
        "prometheus-client>=0.19.0",
        "structlog>=23.2.0",
        "uvloop>=0.19.0; sys_platform != 'win32'",
        "python-dotenv>=1.0.0"
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-mock>=3.11.0",
            "pytest-cov>=4.1.0",
            "black>=23.7.0",
            "flake8>=6.0.0",
            "mypy>=1.5.0"
        ]
    },
    entry_points={
        "console_scripts": [
            "smartcamera-tracker=services.client.main:main"
        ]
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11"
    ]
)
