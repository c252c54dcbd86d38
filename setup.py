from setuptools import setup, find_namespace_packages

setup(
    name="ntp-time-assistant",
    version="0.1.0",
    packages=find_namespace_packages(include=["timeassistant", "timeassistant.*"]),
    py_modules=["main"],
    install_requires=[
        "ntplib>=0.4.0",
        "pyee==11.0.1",
        "python-dotenv==1.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "time-assistant=main:run",
        ],
    },
    python_requires=">=3.10",
    author="PimpMyPixel",
    author_email="your.email@example.com",
    description="NTP offset clock for devices without a reliable hardware clock",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    classifiers=[
        "Programming Language :: Python :: 3.10",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
)
